"""
Install models — progress events and results exchanged by the installer.

ProgressEvents flow out of a single running process; ServerInstallProgress
flows out of the orchestrator; results flow back to the caller.
None of these models ever carries the sudo password.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

Phase = Literal[
    "linux-deps",
    "compat-runtime",
    "distribution-client",
    "payload",
    "validation",
]

# Execution order of the full server install.
PHASES: tuple[str, ...] = (
    "linux-deps",
    "compat-runtime",
    "distribution-client",
    "payload",
    "validation",
)


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ProgressEvent(BaseModel):
    """One progress update from a single install phase.

    ``step`` is one of ``download``, ``extract``, ``downloading``,
    ``error`` or ``complete``.  ``percent`` never decreases within a
    phase; the runner enforces that, not this model.
    """

    percent: int = Field(default=0, ge=0, le=100)
    step: str = "download"
    message: str = ""


class ServerInstallProgress(BaseModel):
    """Orchestrator-level progress — phase identity plus phase-local percent."""

    step: str
    message: str
    phase: Phase
    phase_percent: int = Field(default=0, ge=0, le=100)
    overall_phase: str = ""

    # Only set on the final event emitted by the install service
    success: bool | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class PhaseResult(BaseModel):
    """Outcome of one phase."""

    installed: bool = False
    message: str = ""


class ServerInstallResult(BaseModel):
    """Aggregated result of a full server install."""

    success: bool = False
    message: str = ""
    details: dict[str, PhaseResult] = Field(
        default_factory=lambda: {phase: PhaseResult() for phase in PHASES},
    )

    @property
    def failed_phase(self) -> str | None:
        """First phase that did not complete, or None when all did."""
        for phase in PHASES:
            if not self.details[phase].installed:
                return phase
        return None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()


class InstallResult(BaseModel):
    """Service-level result — the only shape the install service returns."""

    status: Literal["success", "error"]
    target: str
    message: str | None = None
    error: str | None = None
    details: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, target: str, message: str, **kwargs: Any) -> InstallResult:
        return cls(status="success", target=target, message=message, **kwargs)

    @classmethod
    def failure(cls, target: str, error: str, **kwargs: Any) -> InstallResult:
        return cls(status="error", target=target, error=error, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class InstallRequirements(BaseModel):
    """Read-only answer to "can I start installing this target now?"."""

    success: bool = True
    requires_elevated_credential: bool = False
    missing_dependencies: list[str] = Field(default_factory=list)
    can_proceed: bool = True
    message: str = ""
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ParamValidation(BaseModel):
    """Result of validating install request parameters."""

    is_valid: bool
    error: str | None = None
    sanitized_target: str | None = None


class InstallRecord(BaseModel):
    """A single entry in the install history ledger."""

    timestamp: str = Field(default_factory=_now_iso)
    target: str = ""
    status: str = ""               # success, error
    message: str = ""
    error: str = ""
    failed_phase: str | None = None
    duration_ms: int = 0
