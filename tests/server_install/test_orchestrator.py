"""
Tests for the full server install orchestrator.
"""

import pytest

from arkstack.core.services.server_install.data.dependencies import LinuxDependency
from arkstack.core.services.server_install.detection.system_deps import DependencyCheckResult
from arkstack.core.services.server_install.errors import InstallError
from arkstack.core.services.server_install.execution.dependency_installer import (
    DependencyInstallResult,
)
from arkstack.core.services.server_install.execution.process_runner import ProcessRunner
from arkstack.core.services.server_install.installers.compat_runtime import (
    get_compat_runtime_dir,
    get_prefix_dirs,
)
from arkstack.core.services.server_install.installers import distribution_client
from arkstack.core.services.server_install.installers.distribution_client import (
    get_distribution_client_executable,
)
from arkstack.core.services.server_install.installers.payload import (
    get_server_dir,
    get_server_executable,
)
from arkstack.core.services.server_install.orchestration.orchestrator import (
    ServerInstallOrchestrator,
)

CURL = LinuxDependency(name="cURL", package={"*": "curl"}, check_command="curl --version")
FONTS = LinuxDependency(name="Fonts", package={"*": "fontconfig"}, check_command="fc-list", required=False)


def touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("")
    return path


def deps(*missing):
    """Dependency checker double reporting ``missing`` as absent."""
    calls = []

    def check(**kwargs):
        calls.append(kwargs)
        return [
            DependencyCheckResult(dep, installed=dep not in missing)
            for dep in (CURL, FONTS)
        ]

    check.calls = calls
    return check


class DepsInstaller:
    def __init__(self, result=None):
        self.result = result or DependencyInstallResult(True, "All dependencies installed successfully")
        self.calls = []

    def __call__(self, missing, password, on_progress, *, platform="linux"):
        self.calls.append(([d.name for d in missing], password))
        on_progress({"step": "update", "message": "Updating apt package list...", "percent": 3})
        on_progress({"step": "install", "message": "Installing cURL...", "percent": 60, "dependency": "cURL"})
        return self.result


@pytest.fixture
def make_orchestrator(settings, make_spawner):
    def make(platform="linux", check=None, installer=None, runner=None):
        return ServerInstallOrchestrator(
            settings,
            runner=runner or ProcessRunner(make_spawner()),
            platform=platform,
            check_dependencies=check or deps(),
            install_dependencies=installer or DepsInstaller(),
        )

    return make


def _events(recorder, phase):
    return [e for e in recorder.events if e.phase == phase]


# ── Happy path ──────────────────────────────────────────────────


class TestSuccess:
    def test_runs_every_phase_in_order(self, make_orchestrator, fake_installers, recorder, settings):
        result = make_orchestrator().install(recorder.progress)

        assert result.success
        assert result.message == "Server installation completed successfully"
        assert all(r.installed for r in result.details.values())
        assert result.failed_phase is None
        assert fake_installers.calls == ["compat-runtime", "distribution-client", "payload"]

        phases = []
        for e in recorder.events:
            if not phases or phases[-1] != e.phase:
                phases.append(e.phase)
        assert phases == ["linux-deps", "compat-runtime", "distribution-client", "payload", "validation"]
        assert recorder.last.step == "validation-complete"
        assert recorder.last.phase_percent == 100

    def test_no_credential_needed_when_nothing_missing(self, make_orchestrator, fake_installers, recorder):
        installer = DepsInstaller()
        result = make_orchestrator(installer=installer).install(recorder.progress, credential=None)

        assert result.success
        assert installer.calls == []
        assert result.details["linux-deps"].message == (
            "All required Linux dependencies are already installed"
        )

    def test_missing_optional_only_does_not_block(self, make_orchestrator, fake_installers, recorder):
        result = make_orchestrator(check=deps(FONTS)).install(recorder.progress)
        assert result.success

    def test_existing_components_are_skipped(self, make_orchestrator, fake_installers, recorder, settings):
        touch(get_compat_runtime_dir(settings) / "proton")
        for d in get_prefix_dirs(settings):
            d.mkdir(parents=True, exist_ok=True)
        touch(get_distribution_client_executable(settings, "linux"))

        result = make_orchestrator().install(recorder.progress)

        assert result.success
        assert fake_installers.calls == ["payload"]
        assert result.details["compat-runtime"].message == "Proton already installed"
        assert result.details["distribution-client"].message == "SteamCMD already installed"

    def test_windows_skips_linux_only_phases(self, make_orchestrator, fake_installers, recorder):
        check = deps(CURL)
        result = make_orchestrator(platform="windows", check=check).install(recorder.progress)

        assert result.success
        assert check.calls == []
        assert fake_installers.calls == ["distribution-client", "payload"]
        assert result.details["linux-deps"].message == "Linux dependencies not required on this platform"
        assert result.details["compat-runtime"].message == "Proton not required on this platform"


# ── Linux dependencies ──────────────────────────────────────────


class TestLinuxDeps:
    def test_missing_required_without_credential(self, make_orchestrator, fake_installers, recorder):
        result = make_orchestrator(check=deps(CURL)).install(recorder.progress)

        assert not result.success
        assert result.message == (
            "Sudo password required to install missing Linux dependencies: cURL. "
            "Please check installation requirements first."
        )
        assert result.failed_phase == "linux-deps"
        assert fake_installers.calls == []

    def test_installs_with_credential(self, make_orchestrator, fake_installers, recorder):
        installer = DepsInstaller()
        result = make_orchestrator(check=deps(CURL, FONTS), installer=installer).install(
            recorder.progress, credential="hunter2",
        )

        assert result.success
        assert installer.calls == [(["cURL", "Fonts"], "hunter2")]
        assert result.details["linux-deps"].message == "All dependencies installed successfully"

        steps = [e.step for e in _events(recorder, "linux-deps")]
        assert "linux-deps-update" in steps
        assert "linux-deps-install" in steps

    def test_dependency_progress_has_floor(self, make_orchestrator, fake_installers, recorder):
        make_orchestrator(check=deps(CURL)).install(recorder.progress, credential="pw")

        update = next(e for e in recorder.events if e.step == "linux-deps-update")
        assert update.phase_percent == 10
        assert update.overall_phase == "Installing Linux Dependencies"

    def test_dependency_install_failure_stops_run(self, make_orchestrator, fake_installers, recorder):
        installer = DepsInstaller(DependencyInstallResult(
            False, "Failed to install cURL (curl): E: Unable to locate package", ["cURL: failed"],
        ))
        result = make_orchestrator(check=deps(CURL), installer=installer).install(
            recorder.progress, credential="pw",
        )

        assert not result.success
        assert result.message == (
            "Failed to install Linux dependencies: "
            "Failed to install cURL (curl): E: Unable to locate package\ncURL: failed"
        )
        assert fake_installers.calls == []


# ── Component phases ────────────────────────────────────────────


class TestPhaseFailures:
    def test_fail_fast_on_compat_runtime(self, make_orchestrator, fake_installers, recorder):
        fake_installers.fail["compat-runtime"] = InstallError("Failed to download.")
        result = make_orchestrator().install(recorder.progress)

        assert not result.success
        assert result.message == "Proton installation failed: Failed to download."
        assert fake_installers.calls == ["compat-runtime"]
        assert result.details["linux-deps"].installed
        assert not result.details["compat-runtime"].installed
        assert result.details["compat-runtime"].message == "Failed to download."
        assert result.failed_phase == "compat-runtime"

    def test_distribution_client_failure(self, make_orchestrator, fake_installers, recorder):
        fake_installers.fail["distribution-client"] = InstallError("Failed to extract.")
        result = make_orchestrator().install(recorder.progress)

        assert result.message == "SteamCMD installation failed: Failed to extract."
        assert "payload" not in fake_installers.calls

    def test_payload_failure(self, make_orchestrator, fake_installers, recorder):
        fake_installers.fail["payload"] = InstallError("SteamCMD not found. Please install SteamCMD first.")
        result = make_orchestrator().install(recorder.progress)

        assert result.message == (
            "ARK server download failed: SteamCMD not found. Please install SteamCMD first."
        )
        assert result.failed_phase == "payload"

    def test_installer_os_error_becomes_phase_failure(self, make_orchestrator, fake_installers, recorder):
        fake_installers.raise_on["payload"] = OSError("No space left on device")
        result = make_orchestrator().install(recorder.progress)

        assert not result.success
        assert result.message == "ARK server download failed: No space left on device"


class TestValidation:
    def test_missing_server_dir(self, make_orchestrator, fake_installers, recorder, settings):
        fake_installers.payload_files = ()
        result = make_orchestrator().install(recorder.progress)

        assert not result.success
        assert result.message == (
            f"Installation validation failed: ARK server directory not found: {get_server_dir(settings)}"
        )
        assert result.details["payload"].installed
        assert result.failed_phase == "validation"

    def test_missing_server_executable(self, make_orchestrator, fake_installers, recorder, settings):
        fake_installers.payload_files = ("dir",)
        result = make_orchestrator().install(recorder.progress)

        assert result.message == (
            "Installation validation failed: ARK server executable not found: "
            f"{get_server_executable(settings)}"
        )


# ── Progress forwarding ─────────────────────────────────────────


class TestProgress:
    def test_compat_runtime_progress_is_verbatim(self, make_orchestrator, fake_installers, recorder):
        make_orchestrator().install(recorder.progress)

        forwarded = next(e for e in recorder.events if e.step == "compat-runtime-install")
        assert forwarded.phase_percent == 30
        assert forwarded.message == "Downloading... (30%)"
        assert forwarded.overall_phase == "Installing Proton"

    def test_distribution_client_progress_has_floor(self, make_orchestrator, fake_installers, recorder):
        make_orchestrator().install(recorder.progress)

        forwarded = [e for e in _events(recorder, "distribution-client") if e.step == "distribution-client-install"]
        assert forwarded
        assert all(e.phase_percent >= 10 for e in forwarded)

    def test_text_payload_is_normalised(self, make_orchestrator, fake_installers, recorder):
        make_orchestrator().install(recorder.progress)

        forwarded = next(e for e in recorder.events if e.step == "payload-install")
        assert forwarded.phase_percent == 40
        assert forwarded.overall_phase == "Downloading ARK Server"

    def test_each_phase_ends_at_100(self, make_orchestrator, fake_installers, recorder):
        make_orchestrator().install(recorder.progress)

        for phase in ("linux-deps", "compat-runtime", "distribution-client", "payload", "validation"):
            assert _events(recorder, phase)[-1].phase_percent == 100

    def test_failing_sink_does_not_break_install(self, make_orchestrator, fake_installers):
        def sink(event):
            raise RuntimeError("ui went away")

        assert make_orchestrator().install(sink).success


# ── Cancellation ────────────────────────────────────────────────


class TestCancel:
    def test_cancel_mid_phase(self, make_orchestrator, fake_installers, recorder):
        orch = make_orchestrator()
        fake_installers.hang.add("distribution-client")
        fake_installers.on_hang = orch.cancel

        result = orch.install(recorder.progress)

        assert not result.success
        assert result.message == "Installation cancelled"
        assert fake_installers.calls == ["compat-runtime", "distribution-client"]
        assert not result.details["distribution-client"].installed

    def test_cancel_before_runner_phase(self, make_orchestrator, fake_installers, recorder):
        orch = make_orchestrator()
        orch.cancel()

        result = orch.install(recorder.progress)

        assert result.message == "Installation cancelled"
        assert fake_installers.calls == []

    def test_idle_cancel_reports_nothing_killed(self, make_orchestrator):
        assert make_orchestrator().cancel() is False

    def test_cancel_kills_live_process(self, make_orchestrator, make_spawner, settings, recorder):
        spawner = make_spawner()
        orch = make_orchestrator(runner=ProcessRunner(spawner))

        orch.runner.start(
            distribution_client.build_spec(settings, "linux"),
            recorder.progress, recorder.done,
        )
        assert orch.cancel() is True
        assert spawner.processes[0].killed
        assert recorder.done_calls == []


# ── End to end through the real runner ──────────────────────────


class TestWithRunner:
    def test_full_install_with_scripted_processes(
        self, make_orchestrator, make_spawner, settings, fake_home, recorder,
    ):
        proton_dir = get_compat_runtime_dir(settings)
        client = get_distribution_client_executable(settings, "linux")

        def script(command, args):
            if command == str(client):
                touch(get_server_executable(settings))
                return ([
                    " Update state (0x61) downloading, progress: 50.00 (1 / 2)\n",
                    "Success! App '2430930' fully installed.\n",
                ], 8)
            line = args[1]
            if line.startswith("tar") and "--strip-components" in line:
                touch(proton_dir / "proton")
            elif line.startswith("tar"):
                touch(client)
            return (["ok\n"], 0)

        spawner = make_spawner(auto=script)
        result = make_orchestrator(runner=ProcessRunner(spawner)).install(recorder.progress)

        assert result.success, result.message
        assert len(spawner.processes) == 5
        assert all(d.exists() for d in get_prefix_dirs(settings))
