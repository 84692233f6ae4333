"""
Migration runner.

Runs the demonstration phases in order against an external cluster:

    0. create the k3d cluster
    1. apply the IngressClass
    2. expose the backend through the NGINX Ingress Controller
    3. remove the NGINX controller, keep the Ingress resources
    4. install Traefik with its NGINX provider
    5. tear everything down (always, exactly once)

Every phase handles its own failures, records them in a PhaseResult and lets
the run continue.
"""

import logging
import signal
import threading
import time
from typing import Callable, Dict, Optional

from .console import Output
from .probe import probe_endpoint
from .tools import ClusterTools, is_already_exists
from .types import (
    TEARDOWN_ORDER,
    ManifestSet,
    MigrationConfig,
    MigrationReport,
    Phase,
    PhaseResult,
    ProbeResult,
)

logger = logging.getLogger(__name__)

MANIFEST_LABELS = {
    ManifestSet.INGRESS_CLASS: "IngressClass",
    ManifestSet.NGINX: "NGINX",
    ManifestSet.INGRESS: "Ingress",
    ManifestSet.TRAEFIK: "Traefik",
}


def _exit_signals():
    """Signals that end the process and must still trigger teardown."""
    return tuple(
        getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
    )


class TeardownGuard:
    """Run a cleanup action exactly once, however the guarded block exits.

    Inside the block, termination signals become SystemExit so the block
    unwinds normally. While the action runs, interrupts are reported and
    ignored so cleanup is never cut short or re-entered.
    """

    def __init__(self, action: Callable[[], object], signals=None):
        self._action = action
        self._signals = tuple(signals) if signals is not None else _exit_signals()
        self._previous: Dict[int, object] = {}
        self.started = False
        self.completed = False
        self._entered = False

    def __enter__(self) -> "TeardownGuard":
        self._entered = True
        self._install(self._signals, self._raise_exit)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            self.run()
        finally:
            self._restore()
        return False

    def run(self) -> None:
        if self.started:
            logger.debug("Teardown already started, not running it again")
            return
        self.started = True
        self._install(self._signals + (signal.SIGINT,), self._ignore)
        try:
            self._action()
            self.completed = True
        finally:
            if not self._entered:
                self._restore()

    @staticmethod
    def _raise_exit(signum, frame):
        raise SystemExit(128 + signum)

    @staticmethod
    def _ignore(signum, frame):
        logger.warning("Cleanup in progress, ignoring signal %d", signum)

    def _install(self, signals, handler) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in signals:
            if sig not in self._previous:
                self._previous[sig] = signal.getsignal(sig)
            signal.signal(sig, handler)

    def _restore(self) -> None:
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()


class MigrationRunner:
    """Drives the NGINX to Traefik migration against a cluster."""

    def __init__(
        self,
        config: MigrationConfig,
        tools: ClusterTools,
        output: Optional[Output] = None,
        probe: Optional[Callable[..., ProbeResult]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.config = config
        self.tools = tools
        self.output = output or Output(interactive=config.interactive)
        self._probe = probe or probe_endpoint
        self._sleep = sleep or time.sleep
        self.report = MigrationReport()

    # -- full run ---------------------------------------------------------

    def run_demo(self) -> MigrationReport:
        """Run every phase, then tear down. Teardown also runs on interrupt."""
        out = self.output
        with TeardownGuard(self.teardown):
            out.banner()
            out.pause()

            self.provision_cluster()
            out.pause()

            self.setup_ingress_class()
            out.pause()

            self.expose_with_nginx()
            out.pause()

            self.remove_nginx()
            out.pause()

            self.install_traefik()

            self.show_summary()
            out.pause("Press Enter to clean up deployed resources and exit...", clear=False)

        return self.report

    # -- phases -----------------------------------------------------------

    def provision_cluster(self) -> PhaseResult:
        cfg = self.config
        out = self.output
        result = self.report.add(PhaseResult(Phase.CLUSTER))
        out.step("🚀 STEP 0: CREATE K3D CLUSTER")

        out.info(f"Creating k3d cluster: {cfg.cluster_name}")
        out.info("The cluster is created with Traefik disabled and the demo ports exposed")

        if self.tools.cluster_exists(cfg.cluster_name):
            message = f"Cluster {cfg.cluster_name} already exists, skipping creation..."
            out.warning(message)
            result.warn(message)
        else:
            ports = " ".join(f"--port {p.to_k3d_arg()}" for p in cfg.port_mappings)
            out.command(
                f"k3d cluster create {cfg.cluster_name} {ports} "
                f'--k3s-arg "--disable=traefik@server:0"'
            )
            created = self.tools.create_cluster(cfg.cluster_name, cfg.port_mappings)
            if created.ok:
                out.success("Cluster created successfully!")
                out.info("Waiting for cluster to be ready...")
                self._wait(cfg.delays.cluster)
                if not self.tools.wait_for_nodes(cfg.node_timeout).ok:
                    out.warning("Some nodes may not be fully ready")
                    result.warn("Nodes not ready within timeout")
            else:
                out.error(f"Failed to create cluster: {created.output}")
                result.fail(f"Cluster creation failed: {created.output}")

        self.show_cluster_status()
        return result

    def setup_ingress_class(self) -> PhaseResult:
        result = self.report.add(PhaseResult(Phase.INGRESS_CLASS))
        self.output.step("📦 STEP 1: SET UP ENVIRONMENT")

        self.output.info("Creating NGINX IngressClass...")
        self._apply_set(ManifestSet.INGRESS_CLASS, result)

        self.show_cluster_status()
        return result

    def expose_with_nginx(self) -> PhaseResult:
        cfg = self.config
        out = self.output
        result = self.report.add(PhaseResult(Phase.NGINX))
        out.step("🔧 STEP 2: EXPOSE BACKEND WITH NGINX INGRESS")

        out.info("Creating TLS certificate secret...")
        self._create_tls_secret(result)

        out.info("Installing NGINX Ingress Controller...")
        if self._apply_set(ManifestSet.NGINX, result):
            self._wait(cfg.delays.controller)
            self._wait_for_deployment(cfg.nginx_deployment, result)

        out.info("Deploying the ingress configuration...")
        if self._apply_set(ManifestSet.INGRESS, result):
            self._wait(cfg.delays.ingress)

        out.info("Testing backend accessibility through NGINX...")
        self._wait(cfg.delays.probe)
        result.probe = self.check_endpoint("Backend through NGINX Ingress")
        if not result.probe.success:
            result.warn("Backend was not reachable through NGINX")
        return result

    def remove_nginx(self) -> PhaseResult:
        """Delete the controller only. The probe is expected to fail afterwards."""
        cfg = self.config
        out = self.output
        result = self.report.add(PhaseResult(Phase.NGINX_REMOVAL))
        out.step("🗑️  STEP 3: UNINSTALL NGINX INGRESS")

        out.info("Uninstalling NGINX Ingress Controller...")
        path = cfg.manifest_path(ManifestSet.NGINX)
        if path.is_dir():
            deleted = self.tools.delete(path, ignore_not_found=True)
            if deleted.ok:
                out.success("NGINX Ingress Controller removed!")
            else:
                out.warning(f"Failed to remove NGINX resources: {deleted.output}")
                result.warn("NGINX controller removal failed")
        else:
            out.warning(f"NGINX manifests not found at {path}, skipping...")
            result.warn(f"Missing manifests: {path}")

        out.info("Waiting for NGINX pods to terminate...")
        self._wait(cfg.delays.removal)

        out.info("Checking what remains after NGINX controller removal...")
        out.command("kubectl get ingress -A")
        ingresses = self.tools.list_ingresses()
        out.block(ingresses.output if ingresses.ok and ingresses.output else "No ingresses found")

        out.success("Notice: The NGINX Ingress resources are still present!")
        out.info("Only the NGINX controller (pods/services) was removed, not the ingress definitions")

        out.info("Testing backend accessibility (should fail now)...")
        result.probe = self.check_endpoint("Backend without any ingress controller")
        if result.probe.success:
            out.warning("Unexpected: Backend is still accessible!")
            result.warn("Backend still reachable after removing the controller")
        else:
            out.success("Expected behavior: Backend is not accessible without ingress controller")
            out.info("The ingress resources exist, but there's no controller to process them")
        return result

    def install_traefik(self) -> PhaseResult:
        cfg = self.config
        out = self.output
        result = self.report.add(PhaseResult(Phase.TRAEFIK))
        out.step("🌟 STEP 4: INSTALL TRAEFIK WITH NGINX PROVIDER")

        out.info("Installing Traefik with NGINX provider...")
        if self._apply_set(ManifestSet.TRAEFIK, result):
            self._wait(cfg.delays.controller)
            self._wait_for_deployment(cfg.traefik_deployment, result)

        out.info("Testing backend accessibility through Traefik...")
        self._wait(cfg.delays.probe)
        result.probe = self.check_endpoint("Backend through Traefik with NGINX provider")
        if result.probe.success:
            out.success("🎉 Backend is now accessible through Traefik with NGINX provider!")
            out.info("✨ Notice: The NGINX Ingress resources were NOT removed or modified!")
            out.info("🔄 Traefik discovered and processed the existing NGINX Ingress")
        else:
            out.warning("Backend is not reachable through Traefik")
            result.warn("Backend was not reachable through Traefik")
        return result

    def teardown(self) -> PhaseResult:
        """Remove everything the demo created. Each step is best-effort."""
        cfg = self.config
        out = self.output
        result = self.report.add(PhaseResult(Phase.TEARDOWN))
        out.step("🧹 CLEANUP")

        cluster_present = self._best_effort(
            result, "list clusters", lambda: self.tools.cluster_exists(cfg.cluster_name)
        )

        if cluster_present:
            out.info("Cleaning up deployed resources...")
            for manifest_set in TEARDOWN_ORDER:
                path = cfg.manifest_path(manifest_set)
                if not path.is_dir():
                    continue
                label = MANIFEST_LABELS[manifest_set]
                out.info(f"Removing {label} resources...")
                deleted = self._best_effort(
                    result, f"delete {label}", lambda p=path: self.tools.delete(p, ignore_not_found=True)
                )
                if deleted is not None and not deleted.ok:
                    out.warning(f"Failed to remove {label} resources: {deleted.output}")
                    result.warn(f"Failed to remove {label} resources")

            secret = self._best_effort(
                result,
                "delete TLS secret",
                lambda: self.tools.delete_secret(cfg.tls_secret_name, cfg.namespace),
            )
            if secret is not None and not secret.ok:
                out.warning(f"Failed to delete secret {cfg.tls_secret_name}: {secret.output}")
                result.warn("Failed to delete TLS secret")

            out.info(f"Deleting k3d cluster: {cfg.cluster_name}")
            out.command(f"k3d cluster delete {cfg.cluster_name}")
            removed = self._best_effort(
                result, "delete cluster", lambda: self.tools.delete_cluster(cfg.cluster_name)
            )
            if removed is not None and removed.ok:
                out.success("Cluster deleted successfully!")
            else:
                out.warning("Failed to delete cluster")
                result.warn("Failed to delete cluster")
        else:
            out.warning(f"Cluster {cfg.cluster_name} not found, skipping deletion...")

        out.success("Cleanup completed!")
        return result

    # -- helpers ----------------------------------------------------------

    def check_endpoint(self, description: str) -> ProbeResult:
        cfg = self.config
        return self._probe(
            cfg.backend_url,
            cfg.expected_status,
            description,
            credentials=cfg.credentials,
            timeout=cfg.probe_timeout,
            output=self.output,
        )

    def show_cluster_status(self) -> None:
        out = self.output
        out.info("Current cluster status:")
        for listing in self.tools.cluster_status():
            if listing.ok:
                out.block(listing.output)
            else:
                out.block(f"{listing}: unavailable")

    def show_summary(self) -> None:
        cfg = self.config
        out = self.output
        out.step("🎉 DEMONSTRATION COMPLETE!")
        out.summary()

        out.info("Available endpoints:")
        out.block(f"  🌐 Backend: {cfg.backend_url}", style="cyan")
        out.block(f"  📊 Dashboard: {cfg.dashboard_url}", style="cyan")

        out.info("To explore the NGINX provider integration:")
        out.block("  kubectl get ingress -A                         # existing NGINX ingress resources", style="yellow")
        out.block(f"  kubectl describe ingress -n {cfg.namespace}          # ingress details", style="yellow")
        out.block(
            f"  kubectl logs -n {cfg.namespace} deployment/{cfg.traefik_deployment}   "
            "# Traefik discovering NGINX ingresses",
            style="yellow",
        )

    def _apply_set(self, manifest_set: ManifestSet, result: PhaseResult) -> bool:
        label = MANIFEST_LABELS[manifest_set]
        path = self.config.manifest_path(manifest_set)
        if not path.is_dir():
            self.output.warning(f"{label} manifests not found at {path}, skipping...")
            result.warn(f"Missing manifests: {path}")
            return False

        applied = self.tools.apply(path)
        if not applied.ok:
            self.output.warning(f"Failed to apply {label} manifests: {applied.output}")
            result.warn(f"Failed to apply {label} manifests")
            return False

        self.output.success(f"{label} manifests applied!")
        return True

    def _wait_for_deployment(self, name: str, result: PhaseResult) -> None:
        cfg = self.config
        self.output.info(f"Waiting for deployment {name} to be ready...")
        ready = self.tools.wait_for_deployment(cfg.namespace, name, cfg.readiness_timeout)
        if ready.ok:
            self.output.success(f"Deployment {name} is ready!")
        else:
            self.output.warning(f"Deployment {name} may not be fully ready, continuing...")
            result.warn(f"Deployment {name} not ready within {cfg.readiness_timeout}s")

    def _create_tls_secret(self, result: PhaseResult) -> None:
        cfg = self.config
        if not (cfg.cert_path.is_file() and cfg.key_path.is_file()):
            message = f"Certificate files not found at {cfg.cert_path} and {cfg.key_path}"
            self.output.warning(message)
            result.warn(message)
            return

        created = self.tools.create_tls_secret(
            cfg.tls_secret_name, cfg.namespace, cfg.cert_path, cfg.key_path
        )
        if created.ok:
            self.output.success("TLS secret created!")
        elif is_already_exists(created):
            self.output.info(f"Secret {cfg.tls_secret_name} already exists, reusing it")
        else:
            self.output.warning(f"Could not create TLS secret: {created.output}")
            result.warn("TLS secret creation failed")

    def _best_effort(self, result: PhaseResult, action: str, func: Callable):
        try:
            return func()
        except Exception as e:
            logger.warning("Cleanup step '%s' failed: %s", action, e)
            self.output.warning(f"Cleanup step '{action}' failed: {e}")
            result.warn(f"{action} failed: {e}")
            return None

    def _wait(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(seconds)
