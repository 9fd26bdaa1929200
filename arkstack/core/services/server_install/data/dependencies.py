"""
L0 Data — Linux packages the server stack needs.

Package names differ per distro; ``package`` maps package manager →
name, with ``"*"`` as the fallback for every manager.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LinuxDependency:
    name: str
    package: dict[str, str] = field(default_factory=dict)
    check_command: str = ""
    description: str = ""
    required: bool = True

    def package_for(self, manager: str | None) -> str:
        """Package name for ``manager``, falling back to apt, then any."""
        if manager and manager in self.package:
            return self.package[manager]
        for key in ("*", "apt"):
            if key in self.package:
                return self.package[key]
        return next(iter(self.package.values()))


LINUX_DEPENDENCIES: tuple[LinuxDependency, ...] = (
    LinuxDependency(
        name="cURL",
        package={"*": "curl"},
        check_command="curl --version",
        description="Required for downloading Proton and SteamCMD",
    ),
    LinuxDependency(
        name="Unzip",
        package={"*": "unzip"},
        check_command="unzip -v",
        description="Required for extracting downloaded archives",
    ),
    LinuxDependency(
        name="Tar",
        package={"*": "tar"},
        check_command="tar --version",
        description="Required for extracting Proton archive",
    ),
    LinuxDependency(
        name="Xvfb",
        package={
            "apt": "xvfb",
            "dnf": "xorg-x11-server-Xvfb",
            "yum": "xorg-x11-server-Xvfb",
            "pacman": "xorg-server-xvfb",
            "zypper": "xvfb",
        },
        check_command="xvfb-run --help",
        description="Virtual framebuffer for running the server headless",
    ),
    LinuxDependency(
        name="SteamCMD Dependencies (32-bit libraries)",
        package={
            "apt": "libc6:i386",
            "dnf": "glibc.i686",
            "yum": "glibc.i686",
            "pacman": "lib32-glibc",
            "zypper": "glibc-32bit",
        },
        check_command='ldconfig -p | grep -E "libc\\.so\\.6.*i[36]86|libc\\.so\\.6.*x32"',
        description="32-bit C library support required for SteamCMD",
    ),
    LinuxDependency(
        name="Font Configuration",
        package={"*": "fontconfig"},
        check_command="fc-list",
        description="Font configuration for better Proton compatibility",
        required=False,
    ),
)
