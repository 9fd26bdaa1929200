"""
L4 Execution — Pseudo-terminal process handle.

SteamCMD only prints live progress when its stdout is a TTY, so
installer commands run attached to a pty rather than a pipe.  Output
is pumped by a daemon thread and delivered to listeners as decoded
text chunks, followed by a single exit event with the return code.

Where ``pty`` is unavailable (Windows) the same handle falls back to
a merged stdout/stderr pipe.
"""

from __future__ import annotations

import codecs
import logging
import os
import select
import signal
import subprocess
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Protocol

try:
    import pty
except ImportError:  # Windows
    pty = None  # type: ignore[assignment]

from arkstack.core.services.server_install.errors import SpawnError

logger = logging.getLogger(__name__)

DataListener = Callable[[str], None]
ExitListener = Callable[[int], None]

_READ_SIZE = 4096

# How often the pump checks whether the child has exited while the pty
# stays open (a background grandchild can hold it open indefinitely).
_POLL_INTERVAL = 0.2


class ProcessHandle(Protocol):
    """What the runner needs from a live process."""

    def on_data(self, listener: DataListener) -> None: ...

    def on_exit(self, listener: ExitListener) -> None: ...

    def remove_all_listeners(self) -> None: ...

    def kill(self) -> None: ...

    def start(self) -> None: ...


Spawner = Callable[[str, Sequence[str], str | Path], ProcessHandle]


class PtyProcess:
    """A child process whose combined output streams through a pty.

    The process is spawned by the constructor; listeners registered
    before ``start()`` see every byte because the pty buffers until
    the pump thread begins reading.

    Raises:
        SpawnError: If the OS cannot start ``command``.
    """

    def __init__(self, command: str, args: Sequence[str], cwd: str | Path) -> None:
        self.command = command
        self._lock = threading.Lock()
        self._data_listeners: list[DataListener] = []
        self._exit_listeners: list[ExitListener] = []
        self._master_fd: int | None = None
        self._thread: threading.Thread | None = None

        argv = [command, *args]
        try:
            if pty is not None:
                self._proc = self._spawn_pty(argv, cwd)
            else:
                self._proc = subprocess.Popen(
                    argv,
                    cwd=str(cwd),
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                )
        except OSError as exc:
            raise SpawnError(command, exc.strerror or str(exc)) from exc

        self.pid = self._proc.pid
        logger.debug("Spawned pid=%s: %s (cwd=%s)", self.pid, command, cwd)

    def _spawn_pty(self, argv: list[str], cwd: str | Path) -> subprocess.Popen:
        master, slave = pty.openpty()
        try:
            proc = subprocess.Popen(
                argv,
                cwd=str(cwd),
                stdin=slave,
                stdout=slave,
                stderr=slave,
                start_new_session=True,
                close_fds=True,
            )
        except OSError:
            os.close(master)
            raise
        finally:
            os.close(slave)
        self._master_fd = master
        return proc

    # ── Listeners ───────────────────────────────────────────────

    def on_data(self, listener: DataListener) -> None:
        with self._lock:
            self._data_listeners.append(listener)

    def on_exit(self, listener: ExitListener) -> None:
        with self._lock:
            self._exit_listeners.append(listener)

    def remove_all_listeners(self) -> None:
        with self._lock:
            self._data_listeners.clear()
            self._exit_listeners.clear()

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._pump, name=f"pty-{self.pid}", daemon=True,
        )
        self._thread.start()

    def kill(self) -> None:
        """Send SIGKILL to the process (and its group under a pty).

        Does not wait for the exit event.
        """
        if self._proc.poll() is not None:
            return
        if self._master_fd is not None and hasattr(os, "killpg"):
            os.killpg(self._proc.pid, signal.SIGKILL)
        else:
            self._proc.kill()

    # ── Pump ────────────────────────────────────────────────────

    def _pump(self) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = self._read(_POLL_INTERVAL)
                if chunk is None:
                    if self._proc.poll() is None:
                        continue
                    # Exited, but something else still holds the pty
                    self._drain(decoder)
                    break
                if not chunk:
                    break
                self._emit_text(decoder.decode(chunk))
            self._emit_text(decoder.decode(b"", final=True))
        finally:
            code = self._proc.wait()
            self._close()
            logger.debug("pid=%s exited with %s", self.pid, code)
            self._dispatch(self._exit_listeners, code)

    def _drain(self, decoder: codecs.IncrementalDecoder) -> None:
        """Deliver whatever is already buffered, without blocking."""
        while True:
            chunk = self._read(0)
            if not chunk:
                return
            self._emit_text(decoder.decode(chunk))

    def _emit_text(self, text: str) -> None:
        if text:
            self._dispatch(self._data_listeners, text)

    def _read(self, timeout: float) -> bytes | None:
        """Next chunk of output; ``b""`` at EOF, None when nothing arrived in time."""
        if self._master_fd is not None:
            ready, _, _ = select.select([self._master_fd], [], [], timeout)
            if not ready:
                return None
            try:
                return os.read(self._master_fd, _READ_SIZE)
            except OSError:
                # EIO: the child closed its end of the pty
                return b""
        assert self._proc.stdout is not None
        return self._proc.stdout.read1(_READ_SIZE)

    def _close(self) -> None:
        if self._master_fd is not None:
            try:
                os.close(self._master_fd)
            except OSError:
                pass
            self._master_fd = None

    def _dispatch(self, listeners: list, value: object) -> None:
        with self._lock:
            targets = list(listeners)
        for listener in targets:
            try:
                listener(value)
            except Exception:
                logger.exception("Listener failed for pid=%s", self.pid)
