"""
L4 Execution — Phased process runner.

Runs one installer command to completion (or cancellation), turns its
output into monotonically increasing progress, and optionally chains
a second "extract" command once the first succeeds.

Event model
───────────
``start()`` returns immediately.  Output and exit arrive on the
process handle's pump thread; the runner reacts to them and finally
calls ``on_done(error, output)`` exactly once — unless the run is
cancelled, in which case ``on_done`` is never called.

Cancellation model
──────────────────
One runner instance per installation run.  It owns at most one live
handle per slot (primary, extract) and one kill flag per slot.
``cancel()`` flags both slots, detaches the extract handle's listeners,
kills whatever is alive and wakes anyone blocked in ``run()``/``wait_for()``.
Every data/exit handler checks its slot's flag before acting.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from arkstack.core.models.install import ProgressEvent
from arkstack.core.services.server_install.domain.progress_parsers import (
    ProgressParser,
    clamp_percent,
)
from arkstack.core.services.server_install.domain.success_markers import SuccessMarker
from arkstack.core.services.server_install.errors import (
    InstallCancelled,
    InstallError,
    SpawnError,
)
from arkstack.core.services.server_install.execution.pty_process import (
    ProcessHandle,
    PtyProcess,
    Spawner,
)

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressEvent], None]
DoneCallback = Callable[[Exception | None, str | None], None]

# Extraction tools rarely print numbers; each chunk nudges the bar.
_EXTRACT_CAP = 99


@dataclass(frozen=True)
class InstallerSpec:
    """Everything needed to run one installer command.

    ``phase_split`` is the percent at which the download hands over to
    the extract phase.  Single-phase specs normally use 100.
    """

    command: str
    args: Sequence[str] = ()
    cwd: str | Path = "."
    estimated_total: int | None = None
    phase_split: int = 50
    parse_progress: ProgressParser | None = None
    extract_phase: Callable[[], InstallerSpec | None] | None = None
    subject: str = "Ark Server"
    success_marker: SuccessMarker | None = field(default=None, compare=False)


class ProcessRunner:
    """Owns the live processes of one installation run."""

    def __init__(self, spawn: Spawner = PtyProcess, *, extract_step: int = 5) -> None:
        self._spawn = spawn
        self._extract_step = extract_step
        self._lock = threading.RLock()
        self._proc: ProcessHandle | None = None
        self._extract_proc: ProcessHandle | None = None
        self._proc_killed = False
        self._extract_killed = False
        self.cancelled = threading.Event()

    @property
    def busy(self) -> bool:
        """Whether a primary or extract process is alive."""
        with self._lock:
            return self._proc is not None or self._extract_proc is not None

    # ── Primary phase ───────────────────────────────────────────

    def start(self, spec: InstallerSpec, on_progress: ProgressSink, on_done: DoneCallback) -> None:
        """Spawn ``spec`` and drive it to completion asynchronously.

        Raises:
            InstallError: If this runner already has a live process.
        """
        if self.busy:
            raise InstallError("This runner already has a process running")

        emit = _guarded(on_progress)
        output: list[str] = []
        last_percent = 0

        emit(ProgressEvent(percent=0, step="download", message=f"Checking {spec.subject}..."))

        if self.cancelled.is_set():
            return

        try:
            proc = self._spawn(spec.command, spec.args, spec.cwd)
        except (SpawnError, OSError) as exc:
            self._fail_spawn(spec, exc, 0, emit, on_done)
            return

        with self._lock:
            if self.cancelled.is_set():
                _kill_quietly(proc)
                return
            self._proc_killed = False
            self._proc = proc

        def handle_data(chunk: str) -> None:
            nonlocal last_percent
            if self._proc_killed or self._proc is not proc:
                return
            output.append(chunk)
            if spec.parse_progress is None:
                return
            try:
                parsed = spec.parse_progress(chunk, last_percent, spec.estimated_total)
            except Exception:
                logger.debug("Progress parser failed for %s", spec.command, exc_info=True)
                return
            if parsed is None:
                return
            percent = clamp_percent(parsed)
            if percent > last_percent:
                last_percent = percent
                emit(ProgressEvent(
                    percent=percent, step="download",
                    message=f"Downloading... ({percent}%)",
                ))

        def handle_exit(code: int) -> None:
            with self._lock:
                if self._proc_killed:
                    self._proc = None
                    return
                self._proc = None

            text = "".join(output)
            if code != 0:
                marker = spec.success_marker
                if marker is not None and marker.matches(text):
                    logger.info(
                        "%s exited with %s but reported success (%s marker)",
                        spec.command, code, marker.name,
                    )
                else:
                    logger.warning("%s exited with %s", spec.command, code)
                    emit(ProgressEvent(percent=last_percent, step="error", message="Failed to download."))
                    on_done(InstallError("Failed to download."), None)
                    return

            extract = spec.extract_phase() if spec.extract_phase is not None else None
            if extract is None:
                if self.cancelled.is_set():
                    return
                emit(ProgressEvent(percent=100, step="complete", message="Download complete."))
                on_done(None, text)
                return

            self._start_extract(spec, extract, output, emit, on_done)

        proc.on_data(handle_data)
        proc.on_exit(handle_exit)
        proc.start()

    # ── Extract phase ───────────────────────────────────────────

    def _start_extract(
        self,
        spec: InstallerSpec,
        extract: InstallerSpec,
        output: list[str],
        emit: ProgressSink,
        on_done: DoneCallback,
    ) -> None:
        extract_percent = clamp_percent(spec.phase_split)
        emit(ProgressEvent(
            percent=extract_percent, step="extract",
            message="Download complete. Extracting...",
        ))

        if self.cancelled.is_set():
            return

        try:
            eproc = self._spawn(extract.command, extract.args, extract.cwd)
        except (SpawnError, OSError) as exc:
            self._fail_spawn(extract, exc, extract_percent, emit, on_done)
            return

        with self._lock:
            if self.cancelled.is_set():
                _kill_quietly(eproc)
                return
            self._extract_killed = False
            self._extract_proc = eproc

        def handle_data(chunk: str) -> None:
            nonlocal extract_percent
            if self._extract_killed or self._extract_proc is not eproc:
                return
            output.append(chunk)
            if extract_percent < _EXTRACT_CAP:
                extract_percent = min(extract_percent + self._extract_step, _EXTRACT_CAP)
                emit(ProgressEvent(percent=extract_percent, step="extract", message="Extracting..."))

        def handle_exit(code: int) -> None:
            with self._lock:
                if self._extract_killed:
                    self._extract_proc = None
                    return
                self._extract_proc = None

            if code != 0:
                logger.warning("%s exited with %s", extract.command, code)
                emit(ProgressEvent(percent=extract_percent, step="error", message="Failed to extract."))
                on_done(InstallError("Failed to extract."), None)
                return

            if self.cancelled.is_set():
                return
            emit(ProgressEvent(percent=100, step="complete", message="Extraction complete."))
            on_done(None, "".join(output))

        eproc.on_data(handle_data)
        eproc.on_exit(handle_exit)
        eproc.start()

    def _fail_spawn(
        self,
        spec: InstallerSpec,
        exc: Exception,
        percent: int,
        emit: ProgressSink,
        on_done: DoneCallback,
    ) -> None:
        err = exc if isinstance(exc, SpawnError) else SpawnError(spec.command, str(exc))
        logger.error("%s", err)
        emit(ProgressEvent(percent=percent, step="error", message=f"Failed to start process: {err.reason}"))
        on_done(err, None)

    # ── Cancellation ────────────────────────────────────────────

    def cancel(self) -> bool:
        """Kill both phases.  Idempotent; never raises.

        Returns:
            Whether a live process was found.
        """
        with self._lock:
            self.cancelled.set()
            proc, eproc = self._proc, self._extract_proc

            if proc is not None:
                self._proc_killed = True
                self._proc = None
                _kill_quietly(proc)

            if eproc is not None:
                self._extract_killed = True
                self._extract_proc = None
                try:
                    eproc.remove_all_listeners()
                except Exception:
                    logger.debug("Could not detach extract listeners", exc_info=True)
                _kill_quietly(eproc)

        if proc is not None or eproc is not None:
            logger.info("Installer process cancelled")
        return proc is not None or eproc is not None

    # ── Blocking helper ─────────────────────────────────────────

    def run(self, spec: InstallerSpec, on_progress: ProgressSink, *, poll_interval: float = 0.1) -> str:
        """Run ``spec`` and block until it finishes.

        Returns:
            Combined output of both phases.

        Raises:
            InstallError: The run failed.
            InstallCancelled: ``cancel()`` was called.
        """
        return wait_for(
            lambda done: self.start(spec, on_progress, done),
            self.cancelled,
            poll_interval=poll_interval,
        ) or ""


def wait_for(
    start: Callable[[DoneCallback], None],
    cancelled: threading.Event,
    *,
    poll_interval: float = 0.1,
) -> str | None:
    """Bridge a ``(callback)``-style operation to a blocking call.

    ``start`` receives a done callback.  The caller is released when
    that callback fires or when ``cancelled`` is set, whichever is first.

    Raises:
        The error passed to the done callback, or InstallCancelled.
    """
    finished = threading.Event()
    outcome: dict[str, object] = {}

    def done(err: Exception | None, output: str | None = None) -> None:
        outcome["error"] = err
        outcome["output"] = output
        finished.set()

    start(done)

    while not finished.wait(poll_interval):
        if cancelled.is_set():
            raise InstallCancelled("Installation cancelled")

    err = outcome.get("error")
    if isinstance(err, Exception):
        raise err
    output = outcome.get("output")
    return output if isinstance(output, str) else None


def _kill_quietly(handle: ProcessHandle) -> None:
    try:
        handle.kill()
    except Exception:
        logger.debug("Kill failed (process probably already gone)", exc_info=True)


def _guarded(sink: ProgressSink) -> ProgressSink:
    """Wrap a progress sink so a failing consumer cannot break the run."""

    def emit(event: ProgressEvent) -> None:
        try:
            sink(event)
        except Exception:
            logger.warning("Progress sink raised; event dropped", exc_info=True)

    return emit
