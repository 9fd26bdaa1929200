"""
L4 Execution — ``__init__.py`` re-exports all execution functions.

These WRITE to the system: spawn processes, create lock files,
install packages.
"""

from arkstack.core.services.server_install.execution.dependency_installer import (  # noqa: F401
    DependencyInstallResult,
    install_missing_dependencies,
)
from arkstack.core.services.server_install.execution.install_lock import (  # noqa: F401
    InstallLock,
)
from arkstack.core.services.server_install.execution.process_runner import (  # noqa: F401
    InstallerSpec,
    ProcessRunner,
    wait_for,
)
from arkstack.core.services.server_install.execution.pty_process import (  # noqa: F401
    ProcessHandle,
    PtyProcess,
)
from arkstack.core.services.server_install.execution.subprocess_runner import (  # noqa: F401
    run_sudo_command,
)
