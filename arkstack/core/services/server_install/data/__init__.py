"""
L0 Data — installer constants and the Linux dependency catalogue.

Pure data. No logic.
"""

from arkstack.core.services.server_install.data.constants import (  # noqa: F401
    COMPAT_RUNTIME_PREFIX_DIRS,
    SERVER_DIR_NAME,
    SERVER_EXECUTABLE_PARTS,
)
from arkstack.core.services.server_install.data.dependencies import (  # noqa: F401
    LINUX_DEPENDENCIES,
    LinuxDependency,
)
