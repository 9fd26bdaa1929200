"""
L3 Detection — Linux dependency checking.

Read-only checks: each dependency carries a shell check command whose
exit status decides whether it is present.
"""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass

from arkstack.core.services.server_install.data.dependencies import (
    LINUX_DEPENDENCIES,
    LinuxDependency,
)

logger = logging.getLogger(__name__)

_VERSION = re.compile(r"\d+\.\d+[\.\d]*")


@dataclass(frozen=True)
class DependencyCheckResult:
    dependency: LinuxDependency
    installed: bool
    version: str | None = None


def check_dependency(dependency: LinuxDependency, *, timeout: float = 5.0) -> DependencyCheckResult:
    """Run one dependency's check command.

    Returns:
        Result with ``installed`` True when the command exited 0.  A
        missing shell, a timeout or any OS error counts as not installed.
    """
    try:
        r = subprocess.run(
            ["bash", "-c", dependency.check_command],
            capture_output=True, text=True, timeout=timeout,
        )
    except FileNotFoundError:
        logger.warning("bash not found while checking %s", dependency.name)
        return DependencyCheckResult(dependency, installed=False)
    except subprocess.TimeoutExpired:
        logger.warning("Timeout checking dependency %s", dependency.name)
        return DependencyCheckResult(dependency, installed=False)
    except OSError as exc:
        logger.warning("OS error checking dependency %s: %s", dependency.name, exc)
        return DependencyCheckResult(dependency, installed=False)

    if r.returncode != 0:
        return DependencyCheckResult(dependency, installed=False)

    version = "installed"
    first_line = r.stdout.split("\n", 1)[0] if r.stdout else ""
    match = _VERSION.search(first_line)
    if match:
        version = match.group(0)
    return DependencyCheckResult(dependency, installed=True, version=version)


def check_all_dependencies(
    dependencies: Iterable[LinuxDependency] = LINUX_DEPENDENCIES,
    *,
    platform: str = "linux",
    timeout: float = 5.0,
) -> list[DependencyCheckResult]:
    """Check every dependency, in catalogue order.

    Off Linux nothing is checked and everything reports installed.
    """
    if platform != "linux":
        return [
            DependencyCheckResult(dep, installed=True, version="N/A (not Linux)")
            for dep in dependencies
        ]

    results = [check_dependency(dep, timeout=timeout) for dep in dependencies]
    missing = [r.dependency.name for r in results if not r.installed]
    if missing:
        logger.info("Missing Linux dependencies: %s", ", ".join(missing))
    return results


def missing_required(results: Iterable[DependencyCheckResult]) -> list[LinuxDependency]:
    """Required dependencies that are not installed."""
    return [r.dependency for r in results if not r.installed and r.dependency.required]


def missing_any(results: Iterable[DependencyCheckResult]) -> list[LinuxDependency]:
    """All dependencies that are not installed, required or not."""
    return [r.dependency for r in results if not r.installed]
