"""Tests for k3smigrate types."""

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from k3smigrate.types import (
    TEARDOWN_ORDER,
    CommandResult,
    Credentials,
    Delays,
    ManifestSet,
    MigrationConfig,
    MigrationReport,
    Mode,
    Phase,
    PhaseResult,
    PhaseStatus,
    PortMapping,
    ProbeResult,
)


class TestMode:
    def test_mode_values(self):
        assert Mode.DEMO.value == "demo"
        assert Mode.CLEANUP.value == "cleanup"
        assert Mode.HELP.value == "help"

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            Mode("deploy")


class TestPortMapping:
    def test_parse_int(self):
        port = PortMapping.parse(80)
        assert port.host_port == 80
        assert port.container_port == 80
        assert port.node_filter == "loadbalancer"

    def test_parse_host_container(self):
        port = PortMapping.parse("8443:443")
        assert port.host_port == 8443
        assert port.container_port == 443

    def test_parse_with_node_filter(self):
        port = PortMapping.parse("8080:80@server:0")
        assert port.node_filter == "server:0"
        assert port.to_k3d_arg() == "8080:80@server:0"

    def test_parse_dict(self):
        port = PortMapping.parse({"host": 9443, "container": 443})
        assert port == PortMapping(9443, 443)

    def test_parse_invalid(self):
        with pytest.raises(ValueError):
            PortMapping.parse("http")
        with pytest.raises(ValueError):
            PortMapping.parse(True)

    def test_to_k3d_arg(self):
        assert PortMapping(443, 443).to_k3d_arg() == "443:443@loadbalancer"


class TestCredentials:
    def test_defaults(self):
        creds = Credentials()
        assert creds.as_tuple() == ("user", "password")
        assert str(creds) == "user:password"

    def test_parse_string(self):
        creds = Credentials.parse("admin:s3cr:et")
        assert creds.username == "admin"
        assert creds.password == "s3cr:et"

    def test_parse_dict(self):
        creds = Credentials.parse({"username": "admin", "password": "pw"})
        assert creds.as_tuple() == ("admin", "pw")

    def test_parse_missing_separator(self):
        with pytest.raises(ValueError):
            Credentials.parse("admin")


class TestDelays:
    def test_defaults(self):
        delays = Delays()
        assert delays.cluster == 10
        assert delays.controller == 5
        assert delays.ingress == 3

    def test_from_dict_partial(self):
        delays = Delays.from_dict({"probe": 1})
        assert delays.probe == 1
        assert delays.removal == 5

    def test_from_dict_unknown(self):
        with pytest.raises(ValueError, match="warmup"):
            Delays.from_dict({"warmup": 2})

    def test_none(self):
        delays = Delays.none()
        assert (delays.cluster, delays.controller, delays.ingress, delays.probe, delays.removal) == (0, 0, 0, 0, 0)


class TestMigrationConfig:
    def test_default_values(self):
        config = MigrationConfig()
        assert config.cluster_name == "traefik-nginx"
        assert config.namespace == "default"
        assert config.backend_url == "http://whoami.docker.localhost"
        assert config.dashboard_port == 8888
        assert config.cert_path == Path("./certs/external-crt.pem")
        assert config.key_path == Path("./certs/external-key.pem")
        assert config.expected_status == 200
        assert config.required_tools == ("k3d", "kubectl")
        assert [p.host_port for p in config.port_mappings] == [80, 443, 8080, 9090]

    def test_is_immutable(self):
        config = MigrationConfig()
        with pytest.raises(FrozenInstanceError):
            config.cluster_name = "other"

    def test_manifest_path(self):
        config = MigrationConfig(manifests_dir=Path("deploy"))
        assert config.manifest_path(ManifestSet.NGINX) == Path("deploy/nginx")
        assert config.manifest_path(ManifestSet.INGRESS_CLASS) == Path("deploy/ingressclass")

    def test_dashboard_url(self):
        assert MigrationConfig(dashboard_port=9000).dashboard_url == "http://localhost:9000/dashboard/"

    def test_from_dict(self):
        config = MigrationConfig.from_dict({
            "cluster_name": "demo",
            "dashboard_port": "9999",
            "cert_path": "tls/crt.pem",
            "credentials": "admin:admin",
            "port_mappings": [80, "8443:443"],
            "delays": {"cluster": 0},
            "probe_timeout": 5,
        })
        assert config.cluster_name == "demo"
        assert config.dashboard_port == 9999
        assert config.cert_path == Path("tls/crt.pem")
        assert config.credentials == Credentials("admin", "admin")
        assert config.port_mappings == (PortMapping(80, 80), PortMapping(8443, 443))
        assert config.delays.cluster == 0
        assert config.probe_timeout == 5.0

    def test_from_dict_empty(self):
        assert MigrationConfig.from_dict(None) == MigrationConfig()

    def test_with_overrides_ignores_none(self):
        config = MigrationConfig().with_overrides(namespace="demo", cluster_name=None)
        assert config.namespace == "demo"
        assert config.cluster_name == "traefik-nginx"


class TestResults:
    def test_command_result(self):
        result = CommandResult(["kubectl", "apply"], 1, "out\n", "err\n")
        assert not result.ok
        assert result.output == "out\nerr"
        assert str(result) == "kubectl apply"

    def test_probe_success(self):
        result = ProbeResult("http://x", 200, status_code=200, body="ok")
        assert result.connected
        assert result.success

    def test_probe_wrong_status(self):
        result = ProbeResult("http://x", 200, status_code=404)
        assert result.connected
        assert not result.success

    def test_probe_connection_failure(self):
        result = ProbeResult("http://x", 200, error="Connection refused")
        assert not result.connected
        assert not result.success

    def test_phase_result_warn_then_fail(self):
        result = PhaseResult(Phase.NGINX)
        result.warn("slow")
        assert result.status == PhaseStatus.WARNING
        result.fail("broken")
        assert result.status == PhaseStatus.FAILED
        result.warn("later")
        assert result.status == PhaseStatus.FAILED
        assert result.messages == ["slow", "broken", "later"]

    def test_report(self):
        report = MigrationReport()
        report.add(PhaseResult(Phase.CLUSTER))
        assert report.clean
        report.add(PhaseResult(Phase.NGINX, PhaseStatus.WARNING))
        assert not report.clean
        assert report.get(Phase.NGINX).status == PhaseStatus.WARNING
        assert report.get(Phase.TRAEFIK) is None


def test_teardown_order_reverses_apply_order():
    assert TEARDOWN_ORDER == (
        ManifestSet.TRAEFIK,
        ManifestSet.INGRESS,
        ManifestSet.NGINX,
        ManifestSet.INGRESS_CLASS,
    )
