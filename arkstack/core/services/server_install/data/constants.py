"""
L0 Data — installer constants.

Pure data. No logic. No imports beyond stdlib.
"""

from __future__ import annotations

# ── Server payload layout ───────────────────────────────────────

SERVER_DIR_NAME = "AASMServer"

# Relative to the server directory.  The Windows executable is used on
# every platform; Linux runs it through the compatibility runtime.
SERVER_EXECUTABLE_PARTS: tuple[str, ...] = (
    "ShooterGame", "Binaries", "Win64", "ArkAscendedServer.exe",
)

# ── Compatibility runtime ───────────────────────────────────────

COMPAT_RUNTIME_DIR_NAME = "proton"

# Directories Proton needs before it can launch anything.  Entries
# starting with "~" live under the user's home, the rest under the
# install root.
COMPAT_RUNTIME_PREFIX_DIRS: tuple[str, ...] = (
    ".wine-ark",
    ".steam-compat",
    ".steam",
    "~/.config/protonfixes",
)

# ── Distribution client ─────────────────────────────────────────

DISTRIBUTION_CLIENT_DIR_NAME = "steamcmd"
DISTRIBUTION_CLIENT_EXE_LINUX = "steamcmd.sh"
DISTRIBUTION_CLIENT_EXE_WINDOWS = "steamcmd.exe"

# ── Messages ────────────────────────────────────────────────────

MSG_ALREADY_RUNNING = (
    "An install is already in progress. Please cancel it before starting a new one."
)
MSG_CANCELLED = "Installation cancelled"
