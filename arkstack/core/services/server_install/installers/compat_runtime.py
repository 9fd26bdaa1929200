"""
Compatibility runtime installer (Proton GE).

Linux only: the server binary is a Windows executable.  Download is a
curl stream with no numeric progress, so the first half of the bar is
a heuristic; the second half is the tar extraction.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path

from arkstack.core.models.settings import InstallerSettings
from arkstack.core.services.server_install.data.constants import (
    COMPAT_RUNTIME_DIR_NAME,
    COMPAT_RUNTIME_PREFIX_DIRS,
)
from arkstack.core.services.server_install.domain.progress_parsers import heuristic_parser
from arkstack.core.services.server_install.execution.process_runner import (
    DoneCallback,
    InstallerSpec,
    ProcessRunner,
    ProgressSink,
)

logger = logging.getLogger(__name__)

SUBJECT = "Proton"


def get_compat_runtime_dir(settings: InstallerSettings) -> Path:
    return settings.root / COMPAT_RUNTIME_DIR_NAME


def get_prefix_dirs(settings: InstallerSettings) -> list[Path]:
    """Directories Proton needs before it can launch the server."""
    dirs = []
    for entry in COMPAT_RUNTIME_PREFIX_DIRS:
        if entry.startswith("~"):
            dirs.append(Path(entry).expanduser())
        else:
            dirs.append(settings.root / entry)
    return dirs


def find_compat_runtime_binary(settings: InstallerSettings) -> Path | None:
    base = get_compat_runtime_dir(settings)
    for candidate in (base / "proton", base / "dist" / "bin" / "proton"):
        if candidate.exists():
            return candidate
    return None


def is_compat_runtime_installed(settings: InstallerSettings) -> bool:
    """Binary present and every prefix directory created."""
    if find_compat_runtime_binary(settings) is None:
        return False
    return all(d.exists() for d in get_prefix_dirs(settings))


def build_spec(settings: InstallerSettings) -> InstallerSpec:
    target = get_compat_runtime_dir(settings)
    archive = target / settings.compat_runtime_archive

    def extract() -> InstallerSpec:
        return InstallerSpec(
            command="bash",
            args=("-c", f"tar -xzf {shlex.quote(str(archive))} -C {shlex.quote(str(target))} "
                        "--strip-components=1"),
            cwd=target,
            subject=SUBJECT,
        )

    return InstallerSpec(
        command="bash",
        args=("-c", f"curl -L {shlex.quote(settings.compat_runtime_url)} "
                    f"-o {shlex.quote(str(archive))}"),
        cwd=target,
        phase_split=50,
        parse_progress=heuristic_parser(ceiling=50, step=settings.heuristic_step),
        extract_phase=extract,
        subject=SUBJECT,
    )


def install_compat_runtime(
    callback: DoneCallback,
    on_progress: ProgressSink,
    *,
    runner: ProcessRunner,
    settings: InstallerSettings,
) -> None:
    """Download and unpack Proton, then prepare its prefix directories."""
    target = get_compat_runtime_dir(settings)
    target.mkdir(parents=True, exist_ok=True)

    def done(err: Exception | None, output: str | None = None) -> None:
        if err is None:
            _finish_install(settings)
        callback(err, output)

    runner.start(build_spec(settings), on_progress, done)


def _finish_install(settings: InstallerSettings) -> None:
    binary = get_compat_runtime_dir(settings) / "proton"
    if binary.exists():
        try:
            binary.chmod(0o755)
        except OSError as e:
            logger.warning("Could not make proton binary executable: %s", e)

    for path in get_prefix_dirs(settings):
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Could not create directory %s: %s", path, e)
