"""
Installer exception types.

Lower layers raise these; the orchestrator turns them into a
ServerInstallResult and the install service into an InstallResult.
Nothing above the service ever sees them.
"""

from __future__ import annotations


class InstallError(Exception):
    """Base class for installer failures."""


class SpawnError(InstallError):
    """The OS could not start the requested command."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f'Failed to start process "{command}": {reason}')
        self.command = command
        self.reason = reason


class PhaseError(InstallError):
    """A named orchestrator phase failed."""

    def __init__(self, phase: str, message: str) -> None:
        super().__init__(message)
        self.phase = phase


class CredentialRequiredError(PhaseError):
    """An elevated credential is needed but none was supplied."""


class InstallCancelled(InstallError):
    """The run was cancelled by the user.  Not a failure."""
