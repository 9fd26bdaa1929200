"""
Phase installers — one module per external component.

Each exposes ``is_*_installed(settings)`` and an
``install_*(callback, on_progress, *, runner, settings)`` entry point
that returns immediately and reports through ``callback(err, output)``.
"""

from arkstack.core.services.server_install.installers.compat_runtime import (  # noqa: F401
    get_compat_runtime_dir,
    install_compat_runtime,
    is_compat_runtime_installed,
)
from arkstack.core.services.server_install.installers.distribution_client import (  # noqa: F401
    get_distribution_client_dir,
    get_distribution_client_executable,
    install_distribution_client,
    is_distribution_client_installed,
)
from arkstack.core.services.server_install.installers.payload import (  # noqa: F401
    get_server_dir,
    get_server_executable,
    install_server_payload,
)
