"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from arkstack.core import context
from arkstack.core.models.settings import InstallerSettings


@pytest.fixture(autouse=True)
def _reset_install_root():
    """Keep the process-wide install root from leaking between tests."""
    context.set_install_root(None)
    yield
    context.set_install_root(None)


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    root = tmp_path / "root"
    root.mkdir()
    return root


@pytest.fixture
def fake_home(tmp_path: Path, monkeypatch) -> Path:
    """Point ``~`` at a temp dir so prefix directories stay sandboxed."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def settings(install_root: Path) -> InstallerSettings:
    return InstallerSettings(install_root=install_root)
