"""
L5 Orchestration — ``__init__.py`` re-exports the coordinators.

The install service is the only entry point callers outside this
package should need.
"""

from arkstack.core.services.server_install.orchestration.install_service import (  # noqa: F401
    InstallService,
    resolve_target,
)
from arkstack.core.services.server_install.orchestration.orchestrator import (  # noqa: F401
    ServerInstallOrchestrator,
)
