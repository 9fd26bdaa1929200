"""
L3 Detection — Host platform.

Only Windows and Linux are supported: the server ships a Windows
binary, which Linux runs through the compatibility runtime.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from arkstack.core.services.server_install.errors import InstallError

APP_DIR_NAME = "arkstack"


def get_platform() -> str:
    """Return ``"windows"`` or ``"linux"``.

    Raises:
        InstallError: On any other platform.
    """
    if sys.platform == "win32":
        return "windows"
    if sys.platform.startswith("linux"):
        return "linux"
    raise InstallError(
        f"Only Windows and Linux are supported. Current platform: {sys.platform}"
    )


def needs_compat_runtime(platform: str) -> bool:
    """Whether the payload's executable needs a translation layer here."""
    return platform != "windows"


def default_install_root() -> Path:
    """Per-user data directory the stack is installed into."""
    if get_platform() == "windows":
        base = os.environ.get("APPDATA") or str(Path.home())
        return Path(base) / APP_DIR_NAME
    return Path.home() / ".local" / "share" / APP_DIR_NAME
