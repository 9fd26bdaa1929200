"""
L1 Domain — Tool-specific success detection (pure).

Some tools exit non-zero even when they did their job.  Each such
tool gets its own named marker; the runner only consults the marker
its InstallerSpec carries, never a global list.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class SuccessMarker(Protocol):
    name: str

    def matches(self, output: str) -> bool:
        """True when ``output`` proves the tool succeeded."""
        ...


@dataclass(frozen=True)
class SubstringSuccessMarker:
    """Succeeds when every one of ``required`` appears in the output."""

    name: str
    required: tuple[str, ...]

    def matches(self, output: str) -> bool:
        return bool(self.required) and all(s in output for s in self.required)


# SteamCMD frequently exits with code 6/7/8 after
# "Success! App '2430930' fully installed."
STEAMCMD_SUCCESS = SubstringSuccessMarker(
    name="steamcmd",
    required=("Success! App", "fully installed"),
)
