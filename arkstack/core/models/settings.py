"""
InstallerSettings — everything the installer reads from arkstack.yml.

All fields have defaults so an empty (or missing) config file yields a
working installer.  Paths are resolved lazily: an explicit
``install_root`` wins, then the process context, then the platform
default.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from arkstack.core.context import get_install_root

DEFAULT_COMPAT_RUNTIME_URL = (
    "https://github.com/GloriousEggroll/proton-ge-custom/releases/download/"
    "GE-Proton10-15/GE-Proton10-15.tar.gz"
)
DEFAULT_CLIENT_URL_LINUX = (
    "https://steamcdn-a.akamaihd.net/client/installer/steamcmd_linux.tar.gz"
)
DEFAULT_CLIENT_URL_WINDOWS = (
    "https://steamcdn-a.akamaihd.net/client/installer/steamcmd.zip"
)


class InstallerSettings(BaseModel):
    """Validated installer configuration."""

    install_root: Path | None = None
    server_data_dir: Path | None = None

    # ── Compatibility runtime (Proton GE) ────────────────────────
    compat_runtime_url: str = DEFAULT_COMPAT_RUNTIME_URL
    compat_runtime_archive: str = "GE-Proton10-15.tar.gz"

    # ── Distribution client (SteamCMD) ───────────────────────────
    distribution_client_url_linux: str = DEFAULT_CLIENT_URL_LINUX
    distribution_client_url_windows: str = DEFAULT_CLIENT_URL_WINDOWS
    distribution_client_estimated_bytes: int = 5 * 1024 * 1024

    # ── Payload ──────────────────────────────────────────────────
    app_id: str = "2430930"

    # ── Progress tuning ──────────────────────────────────────────
    heuristic_step: int = Field(default=5, ge=1, le=50)
    extract_step: int = Field(default=5, ge=1, le=50)

    dependency_check_timeout: float = Field(default=5.0, gt=0)

    @property
    def root(self) -> Path:
        """Resolved install root directory."""
        if self.install_root is not None:
            return Path(self.install_root).expanduser()
        ctx_root = get_install_root()
        if ctx_root is not None:
            return ctx_root
        from arkstack.core.services.server_install.detection.platform import (
            default_install_root,
        )
        return default_install_root()

    @property
    def lock_path(self) -> Path:
        return self.root / "install.lock"

    @property
    def history_path(self) -> Path:
        return self.root / ".state" / "install-history.ndjson"
