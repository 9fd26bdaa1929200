"""
Server payload installer: ``app_update`` through SteamCMD.

Always runs, even over an existing install: ``validate`` makes the
same command both the installer and the updater.
"""

from __future__ import annotations

import logging
from pathlib import Path

from arkstack.core.models.install import ProgressEvent
from arkstack.core.models.settings import InstallerSettings
from arkstack.core.services.server_install.data.constants import (
    SERVER_DIR_NAME,
    SERVER_EXECUTABLE_PARTS,
)
from arkstack.core.services.server_install.domain.progress_parsers import (
    SteamCmdProgressParser,
)
from arkstack.core.services.server_install.domain.success_markers import STEAMCMD_SUCCESS
from arkstack.core.services.server_install.errors import InstallError
from arkstack.core.services.server_install.execution.process_runner import (
    DoneCallback,
    InstallerSpec,
    ProcessRunner,
    ProgressSink,
)
from arkstack.core.services.server_install.installers.distribution_client import (
    get_distribution_client_dir,
    get_distribution_client_executable,
)

logger = logging.getLogger(__name__)

SUBJECT = "Ark Server"
MSG_CLIENT_MISSING = "SteamCMD not found. Please install SteamCMD first."


def get_server_dir(settings: InstallerSettings) -> Path:
    """Server payload directory; ``server_data_dir`` relocates it."""
    base = Path(settings.server_data_dir).expanduser() if settings.server_data_dir else settings.root
    return base / SERVER_DIR_NAME


def get_server_executable(settings: InstallerSettings) -> Path:
    return get_server_dir(settings).joinpath(*SERVER_EXECUTABLE_PARTS)


def build_spec(
    settings: InstallerSettings,
    client: Path,
    on_progress: ProgressSink,
) -> InstallerSpec:
    return InstallerSpec(
        command=str(client),
        args=(
            "+force_install_dir", str(get_server_dir(settings)),
            "+login", "anonymous",
            "+app_update", settings.app_id, "validate",
            "+quit",
        ),
        cwd=get_distribution_client_dir(settings),
        estimated_total=100,
        phase_split=100,
        parse_progress=SteamCmdProgressParser(emit=on_progress, subject=SUBJECT),
        subject=SUBJECT,
        success_marker=STEAMCMD_SUCCESS,
    )


def install_server_payload(
    callback: DoneCallback,
    on_progress: ProgressSink,
    *,
    runner: ProcessRunner,
    settings: InstallerSettings,
    platform: str | None = None,
) -> None:
    """Download (or update and validate) the server files."""
    client = get_distribution_client_executable(settings, platform)
    if not client.exists():
        logger.error("%s (looked for %s)", MSG_CLIENT_MISSING, client)
        on_progress(ProgressEvent(percent=0, step="error", message=MSG_CLIENT_MISSING))
        callback(InstallError(MSG_CLIENT_MISSING), None)
        return

    runner.start(build_spec(settings, client, on_progress), on_progress, callback)
