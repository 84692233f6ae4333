"""
K3s Migrate - NGINX Ingress to Traefik migration demonstration

Runs the migration against a local k3d cluster and probes the backend at each
step to show the unmodified Ingress resources being served by Traefik.
"""

__version__ = "0.1.0"

from .types import (
    Mode,
    Phase,
    PhaseStatus,
    ManifestSet,
    PortMapping,
    Credentials,
    Delays,
    MigrationConfig,
    CommandResult,
    ProbeResult,
    PhaseResult,
    MigrationReport,
)

from .schema import (
    ConfigError,
    find_config_file,
    load_config,
    validate_config,
)

from .tools import (
    ClusterTools,
    K3dKubectlTools,
    MissingToolError,
    check_prerequisites,
)

from .probe import probe_endpoint

from .runner import (
    MigrationRunner,
    TeardownGuard,
)

__all__ = [
    # Types
    "Mode",
    "Phase",
    "PhaseStatus",
    "ManifestSet",
    "PortMapping",
    "Credentials",
    "Delays",
    "MigrationConfig",
    "CommandResult",
    "ProbeResult",
    "PhaseResult",
    "MigrationReport",
    # Schema
    "ConfigError",
    "find_config_file",
    "load_config",
    "validate_config",
    # Tools
    "ClusterTools",
    "K3dKubectlTools",
    "MissingToolError",
    "check_prerequisites",
    # Probe
    "probe_endpoint",
    # Runner
    "MigrationRunner",
    "TeardownGuard",
]
