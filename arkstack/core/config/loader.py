"""
Configuration loader — reads arkstack.yml into InstallerSettings.

Lookup order:
    1. Explicit path (``--config``)
    2. ``ARKSTACK_CONFIG`` environment variable
    3. ``<install_root>/arkstack.yml``

A missing file is not an error: the defaults describe a complete
installer.  An unreadable or invalid file is.

``install_root`` precedence:
    ``--install-root``  >  ``ARKSTACK_INSTALL_ROOT``  >  file  >  platform default
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from arkstack.core.models.settings import InstallerSettings

logger = logging.getLogger(__name__)

CONFIG_FILE = "arkstack.yml"
ENV_CONFIG = "ARKSTACK_CONFIG"
ENV_INSTALL_ROOT = "ARKSTACK_INSTALL_ROOT"


class ConfigError(Exception):
    """Raised when installer configuration is invalid or unreadable."""


def find_config_file(install_root: Path | None = None) -> Path | None:
    """Locate the config file without loading it.

    Returns:
        Path to an existing config file, or None.
    """
    env_path = os.environ.get(ENV_CONFIG)
    if env_path:
        return Path(env_path).expanduser()

    if install_root is not None:
        candidate = install_root / CONFIG_FILE
        if candidate.is_file():
            return candidate

    return None


def load_settings(
    path: Path | None = None,
    *,
    install_root: Path | None = None,
) -> InstallerSettings:
    """Load and validate installer settings.

    Args:
        path: Explicit path to arkstack.yml.  If None, searches the
            environment and the install root.
        install_root: Override for ``install_root`` (CLI flag wins
            over file and environment).

    Returns:
        Validated InstallerSettings.

    Raises:
        ConfigError: If an explicitly named file is missing, or any
            file found is invalid.
    """
    explicit = path is not None
    if path is None:
        path = find_config_file(install_root)

    data: dict = {}
    if path is not None:
        if not path.is_file():
            if explicit or os.environ.get(ENV_CONFIG):
                raise ConfigError(f"Config file not found: {path}")
        else:
            data = _read_yaml(path)

    env_root = os.environ.get(ENV_INSTALL_ROOT)
    if env_root:
        data["install_root"] = env_root
    if install_root is not None:
        data["install_root"] = str(install_root)

    try:
        settings = InstallerSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid installer configuration: {e}") from e

    logger.debug("Settings loaded (root=%s, source=%s)", settings.root, path or "defaults")
    return settings


def _read_yaml(path: Path) -> dict:
    logger.debug("Loading installer config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The file may wrap everything under an "installer" key or be flat
    if "installer" not in data:
        return dict(data)
    section = data["installer"]
    if not isinstance(section, dict):
        raise ConfigError(
            f"Expected a mapping under 'installer' in {path}, got {type(section).__name__}"
        )
    return dict(section)
