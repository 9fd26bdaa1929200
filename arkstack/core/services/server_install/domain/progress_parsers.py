"""
L1 Domain — Progress parsers (pure).

Each parser maps one chunk of raw tool output plus the last emitted
percent to a new percent, or ``None`` for "no update".  A parser must
never return a value that would move the indicator backwards; the
runner double-checks, but parsers return ``None`` rather than rely on it.

Also home to ``normalize_payload``: the one place where the many
shapes progress arrives in (event, dict, JSON text, free text) become
a canonical ``ProgressEvent``.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Mapping
from typing import Any

from arkstack.core.models.install import ProgressEvent

ProgressParser = Callable[[str, int, int | None], int | None]
EventSink = Callable[[ProgressEvent], None]

_BYTES_WRITTEN = re.compile(r"Number of bytes written: (\d+)")
_PERCENT_IN_TEXT = re.compile(r"(\d+)%")


def clamp_percent(value: float, low: int = 0, high: int = 100) -> int:
    """Floor ``value`` and clamp it into ``[low, high]``."""
    if value != value:  # NaN
        return low
    return max(low, min(int(math.floor(value)), high))


# ── Generic parsers ─────────────────────────────────────────────


def byte_count_parser(
    ceiling: int = 50,
    pattern: re.Pattern[str] = _BYTES_WRITTEN,
) -> ProgressParser:
    """Parser for tools that print a running byte count.

    Percent is ``floor(bytes / estimated_total * ceiling)``, so a
    download that is followed by an extract phase only fills the
    range below the phase split.
    """

    def parse(chunk: str, last_percent: int, estimated_total: int | None = None) -> int | None:
        if not estimated_total:
            return None
        match = pattern.search(chunk)
        if not match:
            return None
        percent = clamp_percent(int(match.group(1)) / estimated_total * ceiling, high=ceiling)
        return percent if percent > last_percent else None

    return parse


def heuristic_parser(ceiling: int = 50, step: int = 5) -> ProgressParser:
    """Parser for tools with no numeric signal at all.

    Every chunk of output advances by ``step`` until ``ceiling``.
    """

    def parse(chunk: str, last_percent: int, estimated_total: int | None = None) -> int | None:
        if last_percent < ceiling:
            return min(last_percent + step, ceiling)
        return None

    return parse


# ── SteamCMD ────────────────────────────────────────────────────


class SteamCmdProgressParser:
    """Stateful parser for SteamCMD ``app_update`` output.

    SteamCMD prints several log formats; the first matching pattern
    wins.  Besides returning a percent it reports richer events
    through ``emit``:

    - the first ``downloading`` state line emits a one-off 0% "starting"
      event, whatever percent that line carries;
    - a ``verifying`` state line forces 100%.
    """

    PATTERNS: tuple[re.Pattern[str], ...] = (
        re.compile(r"Update state.*?progress: (\d+\.\d+)", re.IGNORECASE),
        re.compile(r"\[\s*(\d+)%\]\s+Downloading update", re.IGNORECASE),
        re.compile(r"\[\s*(\d+)%\]\s+Download complete", re.IGNORECASE),
        re.compile(r"progress: (\d+\.\d+)", re.IGNORECASE),
        re.compile(r"(\d+)% complete", re.IGNORECASE),
        re.compile(r"downloading.*?(\d+)%", re.IGNORECASE),
    )

    DOWNLOADING = "Update state (0x61) downloading"
    VERIFYING = "Update state (0x81) verifying"

    def __init__(self, emit: EventSink | None = None, subject: str = "Ark Server") -> None:
        self._emit = emit
        self._subject = subject
        self.download_started = False

    def __call__(self, chunk: str, last_percent: int, estimated_total: int | None = None) -> int | None:
        percent = self._match(chunk)

        if percent is not None and self.DOWNLOADING in chunk:
            if not self.download_started:
                self.download_started = True
                self._send(0, f"Starting {self._subject} download...")
            if percent >= last_percent:
                self._send(
                    clamp_percent(percent),
                    f"Downloading {self._subject} ({percent:.1f}%)",
                )
                return clamp_percent(percent)
            return None

        if self.VERIFYING in chunk:
            self._send(100, f"Verifying {self._subject} installation...")
            return 100

        return None

    def _match(self, chunk: str) -> float | None:
        for pattern in self.PATTERNS:
            match = pattern.search(chunk)
            if match:
                return min(float(match.group(1)), 100.0)
        return None

    def _send(self, percent: int, message: str) -> None:
        if self._emit is not None:
            self._emit(ProgressEvent(percent=percent, step="downloading", message=message))


# ── Payload normalisation ───────────────────────────────────────


def normalize_payload(
    payload: Any,
    *,
    default_message: str,
    default_percent: int = 0,
    floor: int = 0,
) -> ProgressEvent:
    """Turn any progress payload into one canonical ``ProgressEvent``.

    Accepted shapes:
      - ``ProgressEvent``
      - mapping with optional ``percent`` / ``message`` / ``step``
      - JSON text encoding such a mapping
      - free text, from which a ``NN%`` substring is used if present

    The resulting percent is clamped into ``[floor, 100]``.
    """
    data = _as_mapping(payload)

    if data is not None:
        raw_percent = data.get("percent")
        if isinstance(raw_percent, (int, float)) and not isinstance(raw_percent, bool):
            percent = clamp_percent(raw_percent, low=floor)
        else:
            percent = max(floor, default_percent)
        step = str(data.get("step") or "")
        message = data.get("message") or step or default_message
        return ProgressEvent(percent=percent, step=step or "download", message=str(message))

    message = str(payload) if payload else default_message
    match = _PERCENT_IN_TEXT.search(message)
    percent = clamp_percent(int(match.group(1)), low=floor) if match else max(floor, default_percent)
    return ProgressEvent(percent=percent, step="download", message=message)


def _as_mapping(payload: Any) -> Mapping[str, Any] | None:
    if isinstance(payload, ProgressEvent):
        return payload.model_dump()
    if isinstance(payload, Mapping):
        return payload
    if isinstance(payload, str) and payload.lstrip().startswith("{"):
        try:
            decoded = json.loads(payload)
        except ValueError:
            return None
        if isinstance(decoded, dict):
            return decoded
    return None
