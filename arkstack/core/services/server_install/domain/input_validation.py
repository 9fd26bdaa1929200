"""
L1 Domain — Install request validation (pure).

Validates what callers hand to the install service before any of it
reaches a command line.  No I/O, no subprocess.
"""

from __future__ import annotations

import re
from typing import Any

from arkstack.core.models.install import ParamValidation

_CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F]")


def sanitize_string(value: Any) -> str:
    """Strip control characters and surrounding whitespace.

    Non-strings sanitize to the empty string.
    """
    if not value or not isinstance(value, str):
        return ""
    return _CONTROL_CHARS.sub("", value).strip()


def validate_install_params(target: Any, credential: Any = None) -> ParamValidation:
    """Validate an install request.

    Args:
        target: Component to install; must be a non-empty string.
        credential: Optional sudo password; must be a string when given.
            The value is never echoed back in the result.

    Returns:
        ParamValidation with ``sanitized_target`` set when valid.
    """
    if not target or not isinstance(target, str):
        return ParamValidation(is_valid=False, error="Invalid install target")

    sanitized = sanitize_string(target)
    if not sanitized:
        return ParamValidation(is_valid=False, error="Invalid install target")

    if credential is not None and not isinstance(credential, str):
        return ParamValidation(is_valid=False, error="Invalid sudo password format")

    return ParamValidation(is_valid=True, sanitized_target=sanitized)
