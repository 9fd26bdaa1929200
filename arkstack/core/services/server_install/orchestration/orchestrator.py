"""
L5 Orchestration — Full server install.

Runs the phases strictly in order::

    linux-deps → compat-runtime → distribution-client → payload → validation

Each phase reports its own 0–100 (``phase_percent``); nothing here
blends phases into a global percentage.  The first failing phase ends
the run (fail-fast) and is recorded in ``ServerInstallResult.details``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from arkstack.core.models.install import (
    ServerInstallProgress,
    ServerInstallResult,
)
from arkstack.core.models.settings import InstallerSettings
from arkstack.core.services.server_install.data.constants import MSG_CANCELLED
from arkstack.core.services.server_install.detection.platform import (
    get_platform,
    needs_compat_runtime,
)
from arkstack.core.services.server_install.detection.system_deps import (
    check_all_dependencies,
    missing_any,
    missing_required,
)
from arkstack.core.services.server_install.domain.progress_parsers import normalize_payload
from arkstack.core.services.server_install.errors import (
    CredentialRequiredError,
    InstallCancelled,
    InstallError,
    PhaseError,
)
from arkstack.core.services.server_install.execution.dependency_installer import (
    install_missing_dependencies,
)
from arkstack.core.services.server_install.execution.process_runner import (
    DoneCallback,
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
from arkstack.core.services.server_install.installers.payload import (
    get_server_dir,
    get_server_executable,
    install_server_payload,
)

logger = logging.getLogger(__name__)

ServerProgressSink = Callable[[ServerInstallProgress], None]

OVERALL_PHASE = {
    "linux-deps": "Installing Linux Dependencies",
    "compat-runtime": "Installing Proton",
    "distribution-client": "Installing SteamCMD",
    "payload": "Downloading ARK Server",
    "validation": "Validating Installation",
}

# Sub-progress of these phases never drops below their "install" event.
LINUX_DEPS_FLOOR = 10
DISTRIBUTION_CLIENT_FLOOR = 10


class ServerInstallOrchestrator:
    """One full server install.  Create a fresh instance per run."""

    def __init__(
        self,
        settings: InstallerSettings,
        runner: ProcessRunner | None = None,
        platform: str | None = None,
        check_dependencies: Callable[..., list] = check_all_dependencies,
        install_dependencies: Callable[..., Any] = install_missing_dependencies,
    ) -> None:
        self.settings = settings
        self.runner = runner or ProcessRunner(extract_step=settings.extract_step)
        self._platform = platform
        self._check_dependencies = check_dependencies
        self._install_dependencies = install_dependencies
        self._emit: ServerProgressSink = lambda _p: None

    def cancel(self) -> bool:
        """Kill the live phase process, if any.  The run then ends as cancelled."""
        return self.runner.cancel()

    def install(
        self,
        on_progress: ServerProgressSink,
        credential: str | None = None,
    ) -> ServerInstallResult:
        """Run every phase and aggregate the outcome.  Never raises."""
        self._emit = on_progress
        result = ServerInstallResult()

        try:
            platform = self._platform or get_platform()
            self._linux_deps(result, platform, credential)
            self._compat_runtime(result, platform)
            self._distribution_client(result, platform)
            self._payload(result, platform)
            self._validation(result)
        except InstallCancelled:
            logger.info("Server install cancelled")
            result.message = MSG_CANCELLED
            return result
        except PhaseError as e:
            logger.error("Server install failed in %s: %s", e.phase, e)
            result.message = str(e)
            return result
        except InstallError as e:
            logger.error("Server install failed: %s", e)
            result.message = str(e)
            return result

        result.success = True
        result.message = "Server installation completed successfully"
        logger.info("Server install complete")
        return result

    # ── Phases ──────────────────────────────────────────────────

    def _linux_deps(self, result: ServerInstallResult, platform: str, credential: str | None) -> None:
        phase = "linux-deps"
        self._progress(phase, "check", "Checking Linux dependencies...", 0)

        if platform != "linux":
            self._passed(result, phase, "Linux dependencies not required on this platform")
            return

        checks = self._check_dependencies(
            platform=platform, timeout=self.settings.dependency_check_timeout,
        )
        required = missing_required(checks)

        if not required:
            self._passed(result, phase, "All required Linux dependencies are already installed")
            return

        names = ", ".join(dep.name for dep in required)
        if not credential:
            result.details[phase].message = (
                f"Sudo password required to install missing dependencies: {names}"
            )
            raise CredentialRequiredError(
                phase,
                f"Sudo password required to install missing Linux dependencies: {names}. "
                "Please check installation requirements first.",
            )

        self._progress(phase, "install", "Installing Linux dependencies...", LINUX_DEPS_FLOOR)
        outcome = self._install_dependencies(
            missing_any(checks), credential,
            lambda payload: self._forward(phase, payload, "Installing Linux dependencies...",
                                          floor=LINUX_DEPS_FLOOR, step_prefix="linux-deps-"),
            platform=platform,
        )

        if not outcome.success:
            result.details[phase].message = outcome.message
            lines = "\n" + "\n".join(outcome.details) if outcome.details else ""
            raise PhaseError(phase, f"Failed to install Linux dependencies: {outcome.message}{lines}")

        self._passed(result, phase, outcome.message)

    def _compat_runtime(self, result: ServerInstallResult, platform: str) -> None:
        phase = "compat-runtime"
        self._progress(phase, "check", "Checking Proton...", 0)

        if not needs_compat_runtime(platform):
            self._passed(result, phase, "Proton not required on this platform")
            return
        if is_compat_runtime_installed(self.settings):
            self._passed(result, phase, "Proton already installed")
            return

        self._run_phase(
            result, phase, "Proton installation failed",
            lambda done: install_compat_runtime(
                done,
                lambda payload: self._forward(phase, payload, "Installing Proton..."),
                runner=self.runner, settings=self.settings,
            ),
        )
        self._passed(result, phase, "Proton installed successfully")

    def _distribution_client(self, result: ServerInstallResult, platform: str) -> None:
        phase = "distribution-client"
        self._progress(phase, "check", "Checking SteamCMD...", 0)

        if is_distribution_client_installed(self.settings, platform):
            self._passed(result, phase, "SteamCMD already installed")
            return

        self._progress(phase, "install", "Installing SteamCMD...", DISTRIBUTION_CLIENT_FLOOR)
        self._run_phase(
            result, phase, "SteamCMD installation failed",
            lambda done: install_distribution_client(
                done,
                lambda payload: self._forward(phase, payload, "Installing SteamCMD...",
                                              floor=DISTRIBUTION_CLIENT_FLOOR),
                runner=self.runner, settings=self.settings, platform=platform,
            ),
        )
        self._passed(result, phase, "SteamCMD installed successfully")

    def _payload(self, result: ServerInstallResult, platform: str) -> None:
        phase = "payload"
        self._progress(phase, "start", "Starting ARK server download...", 0)

        self._run_phase(
            result, phase, "ARK server download failed",
            lambda done: install_server_payload(
                done,
                lambda payload: self._forward(phase, payload, "Downloading ARK server..."),
                runner=self.runner, settings=self.settings, platform=platform,
            ),
        )
        self._passed(result, phase, "ARK server installed successfully")

    def _validation(self, result: ServerInstallResult) -> None:
        phase = "validation"
        self._progress(phase, "start", "Validating installation...", 0)

        checks = (
            ("ARK server directory", get_server_dir(self.settings)),
            ("ARK server executable", get_server_executable(self.settings)),
        )
        for label, path in checks:
            if not path.exists():
                message = f"{label} not found: {path}"
                result.details[phase].message = message
                raise PhaseError(phase, f"Installation validation failed: {message}")

        result.details[phase].installed = True
        result.details[phase].message = "Installation validation successful"
        self._progress(phase, "complete", "Installation validated successfully", 100)

    # ── Helpers ─────────────────────────────────────────────────

    def _run_phase(
        self,
        result: ServerInstallResult,
        phase: str,
        failure: str,
        start: Callable[[DoneCallback], None],
    ) -> None:
        """Run one runner-backed installer to completion.

        Raises:
            InstallCancelled: The runner was cancelled.
            PhaseError: The installer reported an error.
        """
        if self.runner.cancelled.is_set():
            raise InstallCancelled(MSG_CANCELLED)
        try:
            wait_for(start, self.runner.cancelled)
        except InstallCancelled:
            raise
        except (InstallError, OSError) as e:
            result.details[phase].message = str(e)
            raise PhaseError(phase, f"{failure}: {e}") from e

    def _passed(self, result: ServerInstallResult, phase: str, message: str) -> None:
        result.details[phase].installed = True
        result.details[phase].message = message
        title = OVERALL_PHASE[phase].split(" ", 1)[1]
        self._progress(phase, "complete", f"{title} ready", 100)

    def _forward(
        self,
        phase: str,
        payload: Any,
        default_message: str,
        *,
        floor: int = 0,
        step_prefix: str = "",
    ) -> None:
        event = normalize_payload(payload, default_message=default_message, floor=floor)
        step = f"{step_prefix}{event.step}" if step_prefix else f"{phase}-install"
        self._progress(phase, step, event.message, event.percent, raw_step=True)

    def _progress(
        self,
        phase: str,
        step: str,
        message: str,
        percent: int,
        *,
        raw_step: bool = False,
    ) -> None:
        progress = ServerInstallProgress(
            step=step if raw_step else f"{phase}-{step}",
            message=message,
            phase=phase,
            phase_percent=percent,
            overall_phase=OVERALL_PHASE[phase],
        )
        try:
            self._emit(progress)
        except Exception:
            logger.warning("Progress sink raised; event dropped", exc_info=True)

