"""
External cluster tooling.

ClusterTools is the boundary between the migration sequence and the outside
world. K3dKubectlTools implements it by running the k3d and kubectl binaries;
tests substitute an in-memory implementation.
"""

import json
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Set

from .types import CommandResult, PortMapping

logger = logging.getLogger(__name__)


class MissingToolError(RuntimeError):
    """A required command-line tool is not on PATH."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Command '{tool}' not found. Please install it first.")


def check_prerequisites(
    tools: Iterable[str],
    which: Optional[Callable[[str], Optional[str]]] = None,
) -> None:
    """
    Ensure every required tool is installed.

    Raises:
        MissingToolError: For the first tool that cannot be found
    """
    which = which or shutil.which
    for tool in tools:
        path = which(tool)
        if not path:
            raise MissingToolError(tool)
        logger.debug("Found %s at %s", tool, path)


class ClusterTools(ABC):
    """Operations the migration sequence needs from the cluster tooling.

    Methods report failure through CommandResult instead of raising, so each
    phase decides locally whether a failure matters.
    """

    @abstractmethod
    def cluster_names(self) -> Set[str]:
        """Names of the existing k3d clusters (empty on failure)."""

    def cluster_exists(self, name: str) -> bool:
        return name in self.cluster_names()

    @abstractmethod
    def create_cluster(
        self,
        name: str,
        ports: Sequence[PortMapping],
        disable_traefik: bool = True,
    ) -> CommandResult:
        """Create a cluster with the given load balancer port mappings."""

    @abstractmethod
    def delete_cluster(self, name: str) -> CommandResult:
        """Delete a cluster."""

    @abstractmethod
    def wait_for_nodes(self, timeout: int) -> CommandResult:
        """Block until all nodes are Ready or the timeout expires."""

    @abstractmethod
    def apply(self, path: Path) -> CommandResult:
        """Apply every manifest in a directory."""

    @abstractmethod
    def delete(self, path: Path, ignore_not_found: bool = True) -> CommandResult:
        """Delete every resource defined in a directory."""

    @abstractmethod
    def wait_for_deployment(
        self,
        namespace: str,
        name: str,
        timeout: int,
        condition: str = "available",
    ) -> CommandResult:
        """Block until a deployment reports a condition or the timeout expires."""

    @abstractmethod
    def list_ingresses(self) -> CommandResult:
        """Ingress objects across all namespaces, as kubectl prints them."""

    @abstractmethod
    def cluster_status(self) -> List[CommandResult]:
        """Node and pod listings for display."""

    @abstractmethod
    def create_tls_secret(
        self,
        name: str,
        namespace: str,
        cert_path: Path,
        key_path: Path,
    ) -> CommandResult:
        """Create a kubernetes.io/tls secret from PEM files."""

    @abstractmethod
    def delete_secret(self, name: str, namespace: str) -> CommandResult:
        """Delete a secret, ignoring a missing one."""


def is_already_exists(result: CommandResult) -> bool:
    """Whether a failed create reported a conflict with an existing object."""
    text = result.output.lower()
    return "alreadyexists" in text or "already exists" in text


class K3dKubectlTools(ClusterTools):
    """ClusterTools backed by the k3d and kubectl binaries."""

    def __init__(
        self,
        k3d: str = "k3d",
        kubectl: str = "kubectl",
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.k3d_bin = k3d
        self.kubectl_bin = kubectl
        self._run_process = runner

    def run(self, *args: str, timeout: Optional[float] = None) -> CommandResult:
        """Run a command and capture its output. Never raises on failure."""
        argv = [str(a) for a in args]
        logger.debug("Running: %s", " ".join(argv))
        try:
            proc = self._run_process(
                argv,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout,
            )
        except FileNotFoundError:
            logger.debug("Executable not found: %s", argv[0])
            return CommandResult(argv, 127, "", f"{argv[0]}: command not found")
        except subprocess.TimeoutExpired:
            logger.debug("Timed out after %ss: %s", timeout, " ".join(argv))
            return CommandResult(argv, 124, "", f"timed out after {timeout}s")

        result = CommandResult(argv, proc.returncode, proc.stdout or "", proc.stderr or "")
        if not result.ok:
            logger.debug("Exit %d: %s", result.returncode, result.stderr.strip())
        return result

    def k3d(self, *args: str, timeout: Optional[float] = None) -> CommandResult:
        return self.run(self.k3d_bin, *args, timeout=timeout)

    def kubectl(self, *args: str, timeout: Optional[float] = None) -> CommandResult:
        return self.run(self.kubectl_bin, *args, timeout=timeout)

    def cluster_names(self) -> Set[str]:
        result = self.k3d("cluster", "list", "-o", "json")
        if not result.ok:
            return set()
        try:
            clusters = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            logger.warning("Could not parse k3d cluster list output")
            return set()
        return {c["name"] for c in clusters if isinstance(c, dict) and "name" in c}

    def create_cluster(
        self,
        name: str,
        ports: Sequence[PortMapping],
        disable_traefik: bool = True,
    ) -> CommandResult:
        args = ["cluster", "create", name]
        for port in ports:
            args += ["--port", port.to_k3d_arg()]
        if disable_traefik:
            args += ["--k3s-arg", "--disable=traefik@server:0"]
        return self.k3d(*args)

    def delete_cluster(self, name: str) -> CommandResult:
        return self.k3d("cluster", "delete", name)

    def wait_for_nodes(self, timeout: int) -> CommandResult:
        return self.kubectl(
            "wait", "--for=condition=ready", "nodes", "--all", f"--timeout={timeout}s",
        )

    def apply(self, path: Path) -> CommandResult:
        return self.kubectl("apply", "-f", str(path))

    def delete(self, path: Path, ignore_not_found: bool = True) -> CommandResult:
        args = ["delete", "-f", str(path)]
        if ignore_not_found:
            args.append("--ignore-not-found=true")
        return self.kubectl(*args)

    def wait_for_deployment(
        self,
        namespace: str,
        name: str,
        timeout: int,
        condition: str = "available",
    ) -> CommandResult:
        return self.kubectl(
            "wait",
            f"--for=condition={condition}",
            f"--timeout={timeout}s",
            f"deployment/{name}",
            "-n", namespace,
        )

    def list_ingresses(self) -> CommandResult:
        return self.kubectl("get", "ingress", "-A")

    def cluster_status(self) -> List[CommandResult]:
        return [
            self.kubectl("get", "nodes", "-o", "wide"),
            self.kubectl("get", "pods", "-A"),
        ]

    def create_tls_secret(
        self,
        name: str,
        namespace: str,
        cert_path: Path,
        key_path: Path,
    ) -> CommandResult:
        return self.kubectl(
            "create", "secret", "tls", name,
            "--namespace", namespace,
            f"--cert={cert_path}",
            f"--key={key_path}",
        )

    def delete_secret(self, name: str, namespace: str) -> CommandResult:
        return self.kubectl(
            "delete", "secret", name,
            "--namespace", namespace,
            "--ignore-not-found=true",
        )
