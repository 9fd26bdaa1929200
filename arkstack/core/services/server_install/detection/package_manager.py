"""
L3 Detection — Linux package manager.

Finds the system package manager and renders manual install
instructions for users who would rather not hand over sudo.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from dataclasses import dataclass

from arkstack.core.services.server_install.data.dependencies import LinuxDependency


@dataclass(frozen=True)
class PackageManagerInfo:
    manager: str
    install_cmd: str
    update_cmd: str
    install_extra: str = ""


# Detection order matters: dnf systems often ship a yum shim.
_MANAGERS: tuple[tuple[tuple[str, ...], PackageManagerInfo], ...] = (
    (("apt-get", "apt"), PackageManagerInfo("apt", "apt-get install -y", "apt-get update")),
    (("dnf",), PackageManagerInfo("dnf", "dnf install -y", "dnf makecache")),
    (("yum",), PackageManagerInfo("yum", "yum install -y", "yum makecache")),
    (("pacman",), PackageManagerInfo("pacman", "pacman -S --noconfirm", "pacman -Sy")),
    (("zypper",), PackageManagerInfo("zypper", "zypper install -y", "zypper refresh")),
)


def detect_package_manager(platform: str = "linux") -> PackageManagerInfo | None:
    """Return the first supported package manager on PATH, or None."""
    if platform != "linux":
        return None
    for binaries, info in _MANAGERS:
        if any(shutil.which(b) for b in binaries):
            return info
    return None


def generate_install_instructions(
    missing: Iterable[LinuxDependency],
    info: PackageManagerInfo | None,
) -> str:
    """Human-readable command the user can run to fix ``missing`` themselves."""
    if info is None:
        return (
            "Could not detect package manager. "
            "Please install the missing dependencies manually."
        )

    packages = " ".join(dep.package_for(info.manager) for dep in missing)
    text = "To install the missing dependencies, run the following command:\n\n"

    if info.manager == "apt":
        return text + f"sudo apt-get update && sudo apt-get install {packages}"
    if info.manager == "dnf":
        return (
            text + f"sudo dnf install {packages}\n\n"
            "For Fedora users, you may also need to enable RPM Fusion repositories:\n"
            "sudo dnf install https://mirrors.rpmfusion.org/free/fedora/"
            "rpmfusion-free-release-$(rpm -E %fedora).noarch.rpm"
        )
    if info.manager == "pacman":
        return text + f"sudo pacman -S {packages}"
    return text + f"sudo {info.manager} install {packages}"
