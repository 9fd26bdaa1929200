"""
L5 Orchestration — Install service (request-level façade).

Validates input, enforces the install lock, dispatches a target to the
full orchestrator or to one component installer, and turns every
outcome, including unexpected exceptions, into an ``InstallResult``.

Targets:
    server                         full orchestrated install
    steamcmd / distribution-client SteamCMD only
    proton / compat-runtime        Proton only (Linux)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from arkstack.core.models.install import (
    InstallRecord,
    InstallRequirements,
    InstallResult,
    ParamValidation,
    ProgressEvent,
    ServerInstallProgress,
    ServerInstallResult,
)
from arkstack.core.models.settings import InstallerSettings
from arkstack.core.persistence.audit import InstallHistory
from arkstack.core.services.server_install.data.constants import MSG_ALREADY_RUNNING
from arkstack.core.services.server_install.detection.package_manager import (
    detect_package_manager,
    generate_install_instructions,
)
from arkstack.core.services.server_install.detection.platform import (
    get_platform,
    needs_compat_runtime,
)
from arkstack.core.services.server_install.detection.system_deps import (
    check_all_dependencies,
    missing_any,
    missing_required,
)
from arkstack.core.services.server_install.domain.input_validation import (
    validate_install_params,
)
from arkstack.core.services.server_install.errors import InstallCancelled, InstallError
from arkstack.core.services.server_install.execution.install_lock import InstallLock
from arkstack.core.services.server_install.execution.process_runner import (
    ProcessRunner,
    wait_for,
)
from arkstack.core.services.server_install.installers.compat_runtime import (
    install_compat_runtime,
    is_compat_runtime_installed,
)
from arkstack.core.services.server_install.installers.distribution_client import (
    install_distribution_client,
    is_distribution_client_installed,
)
from arkstack.core.services.server_install.orchestration.orchestrator import (
    ServerInstallOrchestrator,
)

logger = logging.getLogger(__name__)

InstallProgressSink = Callable[[ProgressEvent | ServerInstallProgress], None]

TARGET_ALIASES = {
    "server": "server",
    "steamcmd": "steamcmd",
    "distribution-client": "steamcmd",
    "proton": "proton",
    "compat-runtime": "proton",
}

CANCELLABLE_TARGETS = frozenset({"server"})


def resolve_target(target: str) -> str | None:
    """Canonical target name, or None when unknown."""
    return TARGET_ALIASES.get(target)


class InstallService:
    """Entry point for every install request against one install root."""

    def __init__(
        self,
        settings: InstallerSettings,
        *,
        platform: str | None = None,
        check_dependencies: Callable[..., list] = check_all_dependencies,
        runner_factory: Callable[[], ProcessRunner] | None = None,
        orchestrator_factory: Callable[..., ServerInstallOrchestrator] = ServerInstallOrchestrator,
        lock: InstallLock | None = None,
        history: InstallHistory | None = None,
        clear_stale_lock: bool = True,
    ) -> None:
        self.settings = settings
        self.lock = lock or InstallLock(settings.lock_path)
        self.history = history or InstallHistory(settings.history_path)
        self._platform = platform
        self._check_dependencies = check_dependencies
        self._runner_factory = runner_factory or (
            lambda: ProcessRunner(extract_step=settings.extract_step)
        )
        self._orchestrator_factory = orchestrator_factory
        self._active: ServerInstallOrchestrator | None = None
        self._active_lock = threading.Lock()

        # A long-lived host owns the root: any lock found at startup is stale.
        if clear_stale_lock and self.lock.force_clear():
            logger.warning("Removed stale install lock at %s", self.lock.path)

    @property
    def platform(self) -> str:
        return self._platform or get_platform()

    # ── Read-only queries ───────────────────────────────────────

    def validate_params(self, target: Any, credential: Any = None) -> ParamValidation:
        return validate_install_params(target, credential)

    def check_requirements(self, target: str) -> InstallRequirements:
        """Can ``target`` be installed now, and is a sudo password needed?

        Never mutates state.
        """
        try:
            if resolve_target(target) != "server" or self.platform != "linux":
                return InstallRequirements(message=(
                    "All installation requirements met" if resolve_target(target) == "server"
                    else "No special requirements for this installation"
                ))

            checks = self._check_dependencies(
                platform="linux", timeout=self.settings.dependency_check_timeout,
            )
            required = missing_required(checks)
            if not required:
                return InstallRequirements(message="All installation requirements met")

            names = ", ".join(dep.name for dep in required)
            return InstallRequirements(
                requires_elevated_credential=True,
                missing_dependencies=[dep.name for dep in required],
                can_proceed=False,
                message=(
                    f"Missing required Linux dependencies: {names}. "
                    "Sudo password required for installation."
                ),
            )
        except Exception as e:
            logger.exception("Requirements check failed for %s", target)
            return InstallRequirements(
                success=False, can_proceed=False,
                error=str(e) or "Unknown error during requirements check",
            )

    # ── Install ─────────────────────────────────────────────────

    def install(
        self,
        target: Any,
        on_progress: InstallProgressSink,
        credential: str | None = None,
    ) -> InstallResult:
        """Install ``target``.  Never raises; the lock is always released."""
        started = time.monotonic()
        result = self._install(target, _guarded(on_progress), credential)
        self._record(result, started)
        return result

    def _install(
        self,
        target: Any,
        emit: InstallProgressSink,
        credential: str | None,
    ) -> InstallResult:
        validation = self.validate_params(target, credential)
        if not validation.is_valid:
            name = target if isinstance(target, str) and target else "unknown"
            return InstallResult.failure(name, validation.error or "Invalid install target")

        name = validation.sanitized_target or ""
        canonical = resolve_target(name)
        if canonical is None:
            return InstallResult.failure(name, f"Unknown install target: {name}")

        if self.lock.is_locked():
            logger.warning("Install of %s rejected: lock held at %s", name, self.lock.path)
            return InstallResult.failure(name, MSG_ALREADY_RUNNING)

        try:
            with self.lock.held():
                if canonical == "server":
                    return self._install_server(emit, credential)
                if canonical == "steamcmd":
                    return self._install_distribution_client(name, emit)
                return self._install_compat_runtime(name, emit)
        except Exception as e:
            logger.exception("Install of %s failed unexpectedly", name)
            return InstallResult.failure(name, str(e) or "Unknown error")

    def _install_server(
        self,
        emit: InstallProgressSink,
        credential: str | None,
    ) -> InstallResult:
        orchestrator = self._orchestrator_factory(
            self.settings,
            runner=self._runner_factory(),
            platform=self._platform,
            check_dependencies=self._check_dependencies,
        )
        with self._active_lock:
            self._active = orchestrator
        try:
            result = orchestrator.install(emit, credential)
        finally:
            with self._active_lock:
                self._active = None

        details = {phase: r.model_dump() for phase, r in result.details.items()}
        emit(ServerInstallProgress(
            step="complete",
            message=result.message,
            phase="validation",
            phase_percent=100,
            overall_phase="Installation Complete",
            success=result.success,
            details=details,
        ))

        if result.success:
            return InstallResult.success("server", result.message, details=details)
        return InstallResult.failure(
            "server", result.message, message=result.message, details=details,
        )

    def _install_distribution_client(self, name: str, emit: InstallProgressSink) -> InstallResult:
        platform = self.platform
        if is_distribution_client_installed(self.settings, platform):
            return self._short_circuit(name, "SteamCMD already installed.", emit)

        blocked = self._dependency_gate(name, "SteamCMD", platform, emit)
        if blocked is not None:
            return blocked

        runner = self._runner_factory()
        return self._run_component(
            name, "SteamCMD", emit, runner,
            lambda done: install_distribution_client(
                done, emit, runner=runner, settings=self.settings, platform=platform,
            ),
        )

    def _install_compat_runtime(self, name: str, emit: InstallProgressSink) -> InstallResult:
        platform = self.platform
        if not needs_compat_runtime(platform):
            return self._short_circuit(name, "Proton install is only required on Linux.", emit)
        if is_compat_runtime_installed(self.settings):
            return self._short_circuit(name, "Proton already installed.", emit)

        blocked = self._dependency_gate(name, "Proton", platform, emit)
        if blocked is not None:
            return blocked

        runner = self._runner_factory()
        return self._run_component(
            name, "Proton", emit, runner,
            lambda done: install_compat_runtime(
                done, emit, runner=runner, settings=self.settings,
            ),
        )

    def _dependency_gate(
        self,
        name: str,
        label: str,
        platform: str,
        emit: InstallProgressSink,
    ) -> InstallResult | None:
        """Refuse a component install while required Linux packages are missing.

        Component installs never escalate; the user gets the command to
        run themselves instead.
        """
        if platform != "linux":
            return None

        _status(emit, f"Checking Linux dependencies for {label} installation...")
        checks = self._check_dependencies(
            platform=platform, timeout=self.settings.dependency_check_timeout,
        )
        required = missing_required(checks)
        if required:
            names = ", ".join(dep.name for dep in required)
            instructions = generate_install_instructions(required, detect_package_manager(platform))
            error = f"Missing required Linux dependencies: {names}\n\n{instructions}"
            _status(emit, f"Error: {error}", step="error")
            return InstallResult.failure(name, error)

        optional = missing_any(checks)
        if optional:
            names = ", ".join(dep.name for dep in optional)
            _status(emit, f"Warning: Optional dependencies missing: {names}. Installation will continue.")

        _status(emit, f"All required dependencies satisfied. Starting {label} installation...")
        return None

    def _run_component(
        self,
        name: str,
        label: str,
        emit: InstallProgressSink,
        runner: ProcessRunner,
        start: Callable,
    ) -> InstallResult:
        try:
            wait_for(start, runner.cancelled)
        except InstallCancelled as e:
            return InstallResult.failure(name, str(e))
        except (InstallError, OSError) as e:
            _status(emit, f"Error: {e}", step="error")
            return InstallResult.failure(name, str(e))

        message = f"{label} install completed successfully."
        _status(emit, message, percent=100, step="complete")
        return InstallResult.success(name, message)

    def _short_circuit(self, name: str, message: str, emit: InstallProgressSink) -> InstallResult:
        logger.info("%s: %s", name, message)
        _status(emit, message, percent=100, step="complete")
        return InstallResult.success(name, message)

    # ── Cancel ──────────────────────────────────────────────────

    def cancel(self, target: str) -> dict[str, Any]:
        """Cancel a running install of ``target``.

        Only the full server install is cancellable; other targets
        answer ``success: False`` ("not cancellable", not "failed").
        """
        if resolve_target(target) not in CANCELLABLE_TARGETS:
            return {"success": False, "target": target}

        with self._active_lock:
            active = self._active

        if active is not None:
            # The running install releases the lock itself on its way out
            active.cancel()
        else:
            self.lock.release()

        logger.info("Cancellation requested for %s", target)
        return {"success": True, "target": target}

    # ── History ─────────────────────────────────────────────────

    def _record(self, result: InstallResult, started: float) -> None:
        failed_phase = None
        if not result.ok and result.details:
            failed_phase = ServerInstallResult.model_validate({"details": result.details}).failed_phase
        self.history.write(InstallRecord(
            target=result.target,
            status=result.status,
            message=result.message or "",
            error=result.error or "",
            failed_phase=failed_phase,
            duration_ms=int((time.monotonic() - started) * 1000),
        ))


def _status(
    emit: InstallProgressSink,
    message: str,
    *,
    percent: int = 0,
    step: str = "status",
) -> None:
    emit(ProgressEvent(percent=percent, step=step, message=message))


def _guarded(sink: InstallProgressSink) -> InstallProgressSink:
    def emit(event: ProgressEvent | ServerInstallProgress) -> None:
        try:
            sink(event)
        except Exception:
            logger.warning("Progress sink raised; event dropped", exc_info=True)

    return emit
