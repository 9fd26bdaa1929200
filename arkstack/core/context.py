"""
Install context — the single source of truth for "where are we installing."

The install root is set ONCE at startup by whichever entry point
launches the installer:

    - CLI:    main.py  → context.set_install_root(root)
    - Tests:  conftest → context.set_install_root(tmp_path)

Design notes:
    - Module-level singleton (not a class).
    - get_install_root() returns None when unset — callers fall back
      to the platform default from the settings model.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


_install_root: Optional[Path] = None


def set_install_root(root: Path | None) -> None:
    """Register the install root for the current process."""
    global _install_root
    _install_root = root


def get_install_root() -> Optional[Path]:
    """Return the current install root, or None if not yet set."""
    return _install_root
