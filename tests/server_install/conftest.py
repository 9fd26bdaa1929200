"""
Fixtures for the server installer: scripted fake processes.

``FakeProcess`` stands in for ``PtyProcess``.  By default it does
nothing until the test drives it with ``emit()`` / ``exit()``.  A
spawner created with ``auto=`` plays a script synchronously from
``start()``, which lets blocking callers (``run()``, the orchestrator)
complete without threads.
"""

from __future__ import annotations

from collections.abc import Callable

import pytest


class FakeProcess:
    def __init__(self, command, args, cwd, log: list | None = None):
        self.command = command
        self.args = tuple(args)
        self.cwd = cwd
        self.data_listeners: list = []
        self.exit_listeners: list = []
        self.started = False
        self.killed = False
        self.kill_error: Exception | None = None
        self.script: tuple[list[str], int] | None = None
        self.log = log if log is not None else []

    def on_data(self, listener):
        self.data_listeners.append(listener)

    def on_exit(self, listener):
        self.exit_listeners.append(listener)

    def remove_all_listeners(self):
        self.log.append(("detach", self.command))
        self.data_listeners.clear()
        self.exit_listeners.clear()

    def kill(self):
        self.log.append(("kill", self.command))
        self.killed = True
        if self.kill_error is not None:
            raise self.kill_error

    def start(self):
        self.started = True
        if self.script is not None:
            chunks, code = self.script
            for chunk in chunks:
                self.emit(chunk)
            self.exit(code)

    # ── Test drivers ────────────────────────────────────────────

    def emit(self, text: str):
        for listener in list(self.data_listeners):
            listener(text)

    def exit(self, code: int):
        for listener in list(self.exit_listeners):
            listener(code)


Script = Callable[[str, tuple], "tuple[list[str], int] | None"]


class FakeSpawner:
    """Callable with the ``Spawner`` signature that records every spawn."""

    def __init__(self, auto: Script | None = None):
        self.auto = auto
        self.processes: list[FakeProcess] = []
        self.fail_with: Exception | None = None
        self.log: list = []

    def __call__(self, command, args, cwd):
        if self.fail_with is not None:
            raise self.fail_with
        proc = FakeProcess(command, args, cwd, self.log)
        if self.auto is not None:
            proc.script = self.auto(command, tuple(args))
        self.processes.append(proc)
        return proc

    @property
    def commands(self) -> list[str]:
        return [" ".join((p.command, *p.args)) for p in self.processes]


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def make_spawner() -> Callable[..., FakeSpawner]:
    return FakeSpawner


class Recorder:
    """Collects progress events and done() calls."""

    def __init__(self):
        self.events: list = []
        self.done_calls: list = []

    def progress(self, event):
        self.events.append(event)

    def done(self, err, output=None):
        self.done_calls.append((err, output))

    @property
    def percents(self) -> list[int]:
        return [e.percent for e in self.events]

    @property
    def last(self):
        return self.events[-1]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


# ── Phase installer doubles ─────────────────────────────────────


def touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("")
    return path


class FakeInstallers:
    """Replaces the orchestrator's phase installers with synchronous doubles.

    Each double records its phase, reports one progress payload, and on
    success lays down the files the real installer would.  ``fail``
    maps a phase to the error its done callback receives; ``hang``
    holds a phase open (done never fires) after calling ``on_hang``.
    """

    def __init__(self, monkeypatch):
        from arkstack.core.services.server_install.orchestration import orchestrator

        self.calls: list[str] = []
        self.fail: dict[str, Exception] = {}
        self.raise_on: dict[str, Exception] = {}
        self.hang: set[str] = set()
        self.on_hang: Callable[[], None] = lambda: None
        self.payload_files = ("dir", "exe")

        monkeypatch.setattr(orchestrator, "install_compat_runtime", self.compat_runtime)
        monkeypatch.setattr(orchestrator, "install_distribution_client", self.distribution_client)
        monkeypatch.setattr(orchestrator, "install_server_payload", self.payload)

    def _run(self, phase, done, on_progress, payload, create):
        self.calls.append(phase)
        if phase in self.raise_on:
            raise self.raise_on[phase]
        on_progress(payload)
        if phase in self.hang:
            self.on_hang()
            return
        if phase in self.fail:
            done(self.fail[phase], None)
            return
        create()
        done(None, "")

    def compat_runtime(self, done, on_progress, *, runner, settings):
        from arkstack.core.services.server_install.installers.compat_runtime import (
            get_compat_runtime_dir,
            get_prefix_dirs,
        )

        def create():
            touch(get_compat_runtime_dir(settings) / "proton")
            for d in get_prefix_dirs(settings):
                d.mkdir(parents=True, exist_ok=True)

        self._run(
            "compat-runtime", done, on_progress,
            {"percent": 30, "step": "download", "message": "Downloading... (30%)"},
            create,
        )

    def distribution_client(self, done, on_progress, *, runner, settings, platform=None):
        from arkstack.core.services.server_install.installers.distribution_client import (
            get_distribution_client_executable,
        )

        self._run(
            "distribution-client", done, on_progress,
            {"percent": 3, "step": "download", "message": "Checking SteamCMD..."},
            lambda: touch(get_distribution_client_executable(settings, platform)),
        )

    def payload(self, done, on_progress, *, runner, settings, platform=None):
        from arkstack.core.services.server_install.installers.payload import (
            get_server_dir,
            get_server_executable,
        )

        def create():
            if "exe" in self.payload_files:
                touch(get_server_executable(settings))
            elif "dir" in self.payload_files:
                get_server_dir(settings).mkdir(parents=True)

        self._run(
            "payload", done, on_progress,
            "Downloading... (40%)",
            create,
        )


@pytest.fixture
def fake_installers(monkeypatch, fake_home) -> FakeInstallers:
    return FakeInstallers(monkeypatch)
