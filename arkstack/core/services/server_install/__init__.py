"""
Server install — phased installer for the ARK server stack.

Layout, leaves first::

    data/           constants and the Linux dependency catalogue
    domain/         pure parsing and validation
    detection/      read-only checks of the host
    execution/      processes, locks, sudo
    installers/     one module per external component
    orchestration/  phase sequencing and the install service
"""

from arkstack.core.services.server_install.errors import (  # noqa: F401
    CredentialRequiredError,
    InstallCancelled,
    InstallError,
    PhaseError,
    SpawnError,
)
from arkstack.core.services.server_install.execution import (  # noqa: F401
    InstallerSpec,
    InstallLock,
    ProcessRunner,
)
from arkstack.core.services.server_install.orchestration import (  # noqa: F401
    InstallService,
    ServerInstallOrchestrator,
)
