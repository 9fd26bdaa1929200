"""
L1 Domain — ``__init__.py`` re-exports all pure domain functions.

These functions have NO subprocess calls, NO filesystem access,
NO network calls. Pure input→output.
"""

from arkstack.core.services.server_install.domain.input_validation import (  # noqa: F401
    sanitize_string,
    validate_install_params,
)
from arkstack.core.services.server_install.domain.progress_parsers import (  # noqa: F401
    SteamCmdProgressParser,
    byte_count_parser,
    clamp_percent,
    heuristic_parser,
    normalize_payload,
)
from arkstack.core.services.server_install.domain.success_markers import (  # noqa: F401
    STEAMCMD_SUCCESS,
    SubstringSuccessMarker,
    SuccessMarker,
)
