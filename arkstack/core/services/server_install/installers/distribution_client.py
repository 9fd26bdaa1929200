"""
Distribution client installer (SteamCMD).

Windows downloads through PowerShell, which reports a running byte
count; Linux uses curl with a heuristic.  Both extract in a second phase.
"""

from __future__ import annotations

import shlex
from pathlib import Path

from arkstack.core.models.settings import InstallerSettings
from arkstack.core.services.server_install.data.constants import (
    DISTRIBUTION_CLIENT_DIR_NAME,
    DISTRIBUTION_CLIENT_EXE_LINUX,
    DISTRIBUTION_CLIENT_EXE_WINDOWS,
)
from arkstack.core.services.server_install.detection.platform import get_platform
from arkstack.core.services.server_install.domain.progress_parsers import (
    byte_count_parser,
    heuristic_parser,
)
from arkstack.core.services.server_install.execution.process_runner import (
    DoneCallback,
    InstallerSpec,
    ProcessRunner,
    ProgressSink,
)

SUBJECT = "SteamCMD"


def get_distribution_client_dir(settings: InstallerSettings) -> Path:
    return settings.root / DISTRIBUTION_CLIENT_DIR_NAME


def get_distribution_client_executable(settings: InstallerSettings, platform: str | None = None) -> Path:
    platform = platform or get_platform()
    name = DISTRIBUTION_CLIENT_EXE_WINDOWS if platform == "windows" else DISTRIBUTION_CLIENT_EXE_LINUX
    return get_distribution_client_dir(settings) / name


def is_distribution_client_installed(settings: InstallerSettings, platform: str | None = None) -> bool:
    return get_distribution_client_executable(settings, platform).exists()


def build_spec(settings: InstallerSettings, platform: str) -> InstallerSpec:
    target = get_distribution_client_dir(settings)

    if platform == "windows":
        url = settings.distribution_client_url_windows
        archive = target / "steamcmd.zip"
        return InstallerSpec(
            command="powershell.exe",
            args=("-Command", f'Invoke-WebRequest -Uri "{url}" -OutFile "{archive}"'),
            cwd=target,
            estimated_total=settings.distribution_client_estimated_bytes,
            phase_split=50,
            parse_progress=byte_count_parser(ceiling=50),
            extract_phase=lambda: InstallerSpec(
                command="powershell.exe",
                args=("-Command",
                      f'Expand-Archive -Path "{archive}" -DestinationPath "{target}" -Force'),
                cwd=target,
                subject=SUBJECT,
            ),
            subject=SUBJECT,
        )

    url = settings.distribution_client_url_linux
    archive = target / "steamcmd_linux.tar.gz"
    return InstallerSpec(
        command="bash",
        args=("-c", f"curl -L {shlex.quote(url)} -o {shlex.quote(str(archive))}"),
        cwd=target,
        phase_split=50,
        parse_progress=heuristic_parser(ceiling=50, step=settings.heuristic_step),
        extract_phase=lambda: InstallerSpec(
            command="bash",
            args=("-c", f"tar -xzf {shlex.quote(str(archive))} -C {shlex.quote(str(target))}"),
            cwd=target,
            subject=SUBJECT,
        ),
        subject=SUBJECT,
    )


def install_distribution_client(
    callback: DoneCallback,
    on_progress: ProgressSink,
    *,
    runner: ProcessRunner,
    settings: InstallerSettings,
    platform: str | None = None,
) -> None:
    """Download and unpack SteamCMD into the install root."""
    get_distribution_client_dir(settings).mkdir(parents=True, exist_ok=True)
    runner.start(build_spec(settings, platform or get_platform()), on_progress, callback)
