"""
L4 Execution — Linux dependency installer.

Installs missing packages with the detected package manager, one
package at a time, reporting step-level progress as plain mappings
(``step`` / ``message`` / ``percent`` / ``dependency``).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from arkstack.core.services.server_install.data.dependencies import LinuxDependency
from arkstack.core.services.server_install.detection.package_manager import (
    PackageManagerInfo,
    detect_package_manager,
)
from arkstack.core.services.server_install.execution.subprocess_runner import (
    run_sudo_command,
)

logger = logging.getLogger(__name__)

DepsProgressSink = Callable[[dict[str, Any]], None]
SudoRunner = Callable[[str, str], dict[str, Any]]


@dataclass
class DependencyInstallResult:
    success: bool
    message: str
    details: list[str] = field(default_factory=list)


def install_missing_dependencies(
    missing: Sequence[LinuxDependency],
    password: str,
    on_progress: DepsProgressSink,
    *,
    platform: str = "linux",
    run: SudoRunner = run_sudo_command,
    package_manager: PackageManagerInfo | None = None,
) -> DependencyInstallResult:
    """Install ``missing`` with sudo.

    A failed optional package is recorded and skipped; a failed
    required package (or a failed package-list refresh) ends the run.
    """
    if platform != "linux":
        return DependencyInstallResult(True, "Not running on Linux, dependencies not required")
    if not missing:
        return DependencyInstallResult(True, "All dependencies already installed")

    info = package_manager or detect_package_manager(platform)
    if info is None:
        return DependencyInstallResult(
            False,
            "Could not detect package manager. Supported: apt, yum, dnf, pacman, zypper",
        )

    details: list[str] = []
    total = len(missing) + 2
    current = 0

    def progress(step: str, message: str, **extra: Any) -> None:
        on_progress({"step": step, "message": message,
                     "percent": round(current / total * 100), **extra})

    def sudo(command: str) -> dict[str, Any]:
        result = run(command, password)
        if result.get("needs_sudo"):
            raise _CredentialRejected(result.get("error", "Sudo authentication failed"))
        return result

    try:
        if info.manager == "apt":
            progress("dpkg-fix", "Fixing any interrupted package configurations...")
            r = sudo("dpkg --configure -a")
            details.append("✓ Fixed dpkg configurations" if r["ok"]
                           else f"⚠ dpkg fix warning: {r.get('error', '')}")

            if any(":i386" in dep.package_for("apt") for dep in missing):
                progress("enable-i386", "Enabling 32-bit (i386) architecture support...")
                r = sudo("dpkg --add-architecture i386")
                details.append("✓ Enabled i386 architecture" if r["ok"]
                               else f"⚠ dpkg add-architecture i386: {r.get('error', '')}")
        current += 1

        progress("update", f"Updating {info.manager} package list...")
        r = sudo(info.update_cmd)
        if not r["ok"]:
            details.append(f"✗ Failed to update {info.manager} package list")
            return DependencyInstallResult(
                False, f"Dependency installation failed: {r.get('error', 'update failed')}", details,
            )
        current += 1
        details.append(f"✓ Updated {info.manager} package list")

        for dep in missing:
            current += 1
            package = dep.package_for(info.manager)
            progress("install", f"Installing {dep.name} ({package})...", dependency=dep.name)

            command = " ".join(p for p in (info.install_cmd, info.install_extra, package) if p)
            r = sudo(command)
            if r["ok"]:
                details.append(f"✓ Installed {dep.name}")
                continue

            error = r.get("stderr") or r.get("error", "")
            details.append(f"✗ Failed to install {dep.name} ({package}): {error}")

            if info.manager == "dnf":
                retry = f"{info.install_cmd} --allowerasing {package}"
                details.append(f"! Retry with --allowerasing: {retry}")
                if sudo(retry)["ok"]:
                    details.append(f"✓ Installed {dep.name} (after retry with --allowerasing)")
                    continue
                details.append(f"✗ Retry failed for {dep.name}")

            if dep.required:
                logger.error("Required dependency %s failed to install", dep.name)
                return DependencyInstallResult(
                    False, f"Failed to install {dep.name} ({package}): {error}", details,
                )
            logger.warning("Optional dependency %s failed to install", dep.name)

    except _CredentialRejected as e:
        return DependencyInstallResult(False, str(e), details)

    current = total
    progress("complete", "Linux dependencies installation completed")
    return DependencyInstallResult(True, "All dependencies installed successfully", details)


class _CredentialRejected(Exception):
    pass
