"""External resources a scaffolded project depends on.

Each function talks to one collaborator outside this process (docker, the
network, the Go toolchain) and raises a ``ScaffoldError`` subclass on
failure.  The pipeline decides whether that failure is fatal.
"""

from webinit.provision.assets import fetch_asset
from webinit.provision.database import ProvisionOutcome, provision_database
from webinit.provision.toolchain import init_dependency_module, run_entrypoint

__all__ = [
    "ProvisionOutcome",
    "fetch_asset",
    "init_dependency_module",
    "provision_database",
    "run_entrypoint",
]
