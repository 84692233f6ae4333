"""
Type definitions for the k3smigrate demonstration.

These dataclasses hold the run configuration (fixed for one execution) and the
results reported by commands, probes and phases.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


class Mode(str, Enum):
    """CLI run mode."""
    DEMO = "demo"
    CLEANUP = "cleanup"
    HELP = "help"


class Phase(str, Enum):
    """Demonstration phases, in execution order."""
    CLUSTER = "cluster"
    INGRESS_CLASS = "ingressclass"
    NGINX = "nginx"
    NGINX_REMOVAL = "nginx-removal"
    TRAEFIK = "traefik"
    TEARDOWN = "teardown"


class PhaseStatus(str, Enum):
    """Outcome of a single phase."""
    OK = "ok"
    WARNING = "warning"
    FAILED = "failed"
    SKIPPED = "skipped"


class ManifestSet(str, Enum):
    """Manifest directories under the manifests root.

    The runner never reads these files, it only hands the directory to kubectl.
    """
    INGRESS_CLASS = "ingressclass"
    NGINX = "nginx"
    INGRESS = "ingress"
    TRAEFIK = "traefik"


# Reverse of the apply order
TEARDOWN_ORDER = (
    ManifestSet.TRAEFIK,
    ManifestSet.INGRESS,
    ManifestSet.NGINX,
    ManifestSet.INGRESS_CLASS,
)


@dataclass(frozen=True)
class PortMapping:
    """Host to load balancer port mapping for the k3d cluster."""
    host_port: int
    container_port: int
    node_filter: str = "loadbalancer"

    @classmethod
    def parse(cls, port_spec: Any) -> "PortMapping":
        """Parse "80", 80, "8080:80", "8080:80@loadbalancer" or a dict."""
        if isinstance(port_spec, bool):
            raise ValueError(f"Invalid port mapping: {port_spec!r}")

        if isinstance(port_spec, int):
            return cls(host_port=port_spec, container_port=port_spec)

        if isinstance(port_spec, dict):
            host = port_spec.get("host", port_spec.get("host_port"))
            container = port_spec.get("container", port_spec.get("container_port", host))
            if host is None:
                raise ValueError(f"Invalid port mapping: {port_spec!r}")
            return cls(
                host_port=int(host),
                container_port=int(container),
                node_filter=port_spec.get("node_filter", "loadbalancer"),
            )

        port_str = str(port_spec).strip()
        node_filter = "loadbalancer"
        if "@" in port_str:
            port_str, node_filter = port_str.split("@", 1)

        try:
            if ":" in port_str:
                host, container = port_str.split(":", 1)
                return cls(int(host), int(container), node_filter)
            return cls(int(port_str), int(port_str), node_filter)
        except ValueError:
            raise ValueError(f"Invalid port mapping: {port_spec!r}") from None

    def to_k3d_arg(self) -> str:
        return f"{self.host_port}:{self.container_port}@{self.node_filter}"


def default_port_mappings() -> List[PortMapping]:
    return [PortMapping(port, port) for port in (80, 443, 8080, 9090)]


@dataclass(frozen=True)
class Credentials:
    """HTTP Basic credentials sent with every probe."""
    username: str = "user"
    password: str = "password"

    @classmethod
    def parse(cls, value: Any) -> "Credentials":
        if isinstance(value, Credentials):
            return value
        if isinstance(value, dict):
            return cls(
                username=str(value.get("username", "user")),
                password=str(value.get("password", "password")),
            )
        text = str(value)
        if ":" not in text:
            raise ValueError("Credentials must be given as 'user:password'")
        username, password = text.split(":", 1)
        return cls(username=username, password=password)

    def as_tuple(self) -> Tuple[str, str]:
        return (self.username, self.password)

    def __str__(self) -> str:
        return f"{self.username}:{self.password}"


@dataclass(frozen=True)
class Delays:
    """Fixed settle delays in seconds between cluster operations."""
    cluster: int = 10
    controller: int = 5
    ingress: int = 3
    probe: int = 5
    removal: int = 5

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "Delays":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown delay(s): {', '.join(sorted(unknown))}")
        return cls(**{key: int(value) for key, value in data.items()})

    @classmethod
    def none(cls) -> "Delays":
        return cls(cluster=0, controller=0, ingress=0, probe=0, removal=0)


@dataclass(frozen=True)
class MigrationConfig:
    """Configuration for one demonstration run.

    All values are fixed for the duration of a run. Relative paths resolve
    against the working directory, as kubectl would resolve them.
    """
    cluster_name: str = "traefik-nginx"
    namespace: str = "default"
    backend_url: str = "http://whoami.docker.localhost"
    dashboard_port: int = 8888
    cert_path: Path = Path("./certs/external-crt.pem")
    key_path: Path = Path("./certs/external-key.pem")
    expected_status: int = 200
    manifests_dir: Path = Path("manifests")
    tls_secret_name: str = "external-certs"
    credentials: Credentials = field(default_factory=Credentials)
    port_mappings: Tuple[PortMapping, ...] = field(
        default_factory=lambda: tuple(default_port_mappings())
    )
    nginx_deployment: str = "nginx-ingress-controller"
    traefik_deployment: str = "traefik"
    readiness_timeout: int = 120
    node_timeout: int = 60
    probe_timeout: float = 30.0
    delays: Delays = field(default_factory=Delays)
    interactive: bool = True
    required_tools: Tuple[str, ...] = ("k3d", "kubectl")

    def manifest_path(self, manifest_set: ManifestSet) -> Path:
        return Path(self.manifests_dir) / manifest_set.value

    @property
    def dashboard_url(self) -> str:
        return f"http://localhost:{self.dashboard_port}/dashboard/"

    def with_overrides(self, **overrides: Any) -> "MigrationConfig":
        """Return a copy with the given non-None fields replaced."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "MigrationConfig":
        """Build a config from a mapping, e.g. a parsed migration.yaml.

        Keys that are not present keep their defaults.
        """
        if not data:
            return cls()

        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key in ("cert_path", "key_path", "manifests_dir"):
                kwargs[key] = Path(value)
            elif key in ("dashboard_port", "expected_status", "readiness_timeout", "node_timeout"):
                kwargs[key] = int(value)
            elif key == "probe_timeout":
                kwargs[key] = float(value)
            elif key == "credentials":
                kwargs[key] = Credentials.parse(value)
            elif key == "port_mappings":
                kwargs[key] = tuple(PortMapping.parse(p) for p in value)
            elif key == "delays":
                kwargs[key] = Delays.from_dict(value)
            elif key == "interactive":
                kwargs[key] = bool(value)
            elif key == "required_tools":
                kwargs[key] = tuple(str(t) for t in value)
            else:
                kwargs[key] = str(value)
        return cls(**kwargs)


@dataclass
class CommandResult:
    """Result of an external command."""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout/stderr, stripped."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)

    def __str__(self) -> str:
        return " ".join(self.args)


@dataclass
class ProbeResult:
    """Result of a single HTTP probe.

    status_code is None when no response was obtained at all (DNS failure,
    refused connection, timeout). error then holds the reason.
    """
    url: str
    expected_status: int
    status_code: Optional[int] = None
    body: str = ""
    error: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self.status_code is not None

    @property
    def success(self) -> bool:
        return self.status_code is not None and self.status_code == self.expected_status


@dataclass
class PhaseResult:
    """Outcome of a phase, with the messages worth reporting."""
    phase: Phase
    status: PhaseStatus = PhaseStatus.OK
    messages: List[str] = field(default_factory=list)
    probe: Optional[ProbeResult] = None

    def warn(self, message: str) -> None:
        self.messages.append(message)
        if self.status == PhaseStatus.OK:
            self.status = PhaseStatus.WARNING

    def fail(self, message: str) -> None:
        self.messages.append(message)
        self.status = PhaseStatus.FAILED


@dataclass
class MigrationReport:
    """All phase results of one run, in execution order."""
    phases: List[PhaseResult] = field(default_factory=list)

    def add(self, result: PhaseResult) -> PhaseResult:
        self.phases.append(result)
        return result

    def get(self, phase: Phase) -> Optional[PhaseResult]:
        for result in self.phases:
            if result.phase == phase:
                return result
        return None

    @property
    def clean(self) -> bool:
        """True when every phase finished without warnings or failures."""
        return all(r.status == PhaseStatus.OK for r in self.phases)
