"""
L3 Detection — ``__init__.py`` re-exports all detection functions.

These functions READ system state but never WRITE.
"""

from arkstack.core.services.server_install.detection.package_manager import (  # noqa: F401
    PackageManagerInfo,
    detect_package_manager,
    generate_install_instructions,
)
from arkstack.core.services.server_install.detection.platform import (  # noqa: F401
    default_install_root,
    get_platform,
    needs_compat_runtime,
)
from arkstack.core.services.server_install.detection.system_deps import (  # noqa: F401
    DependencyCheckResult,
    check_all_dependencies,
    check_dependency,
    missing_any,
    missing_required,
)
