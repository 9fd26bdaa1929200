"""
Domain models — Pydantic types for the installer.

    from arkstack.core.models import InstallResult, ProgressEvent, InstallerSettings
"""

from arkstack.core.models.install import (
    InstallRecord,
    InstallRequirements,
    InstallResult,
    ParamValidation,
    PhaseResult,
    ProgressEvent,
    ServerInstallProgress,
    ServerInstallResult,
)
from arkstack.core.models.settings import InstallerSettings

__all__ = [
    "InstallRecord",
    "InstallRequirements",
    "InstallResult",
    "InstallerSettings",
    "ParamValidation",
    "PhaseResult",
    "ProgressEvent",
    "ServerInstallProgress",
    "ServerInstallResult",
]
