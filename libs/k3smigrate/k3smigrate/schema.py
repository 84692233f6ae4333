"""
Configuration loading and validation for migration.yaml.

Values are layered: built-in defaults, then migration.yaml, then
K3SMIGRATE_* environment variables. CLI flags are applied last by the CLI.
"""

import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .types import Credentials, Delays, MigrationConfig, PortMapping

CONFIG_FILENAME = "migration.yaml"
ENV_PREFIX = "K3SMIGRATE_"

INT_FIELDS = ("dashboard_port", "expected_status", "readiness_timeout", "node_timeout")
STR_FIELDS = (
    "cluster_name",
    "namespace",
    "backend_url",
    "tls_secret_name",
    "nginx_deployment",
    "traefik_deployment",
)
PATH_FIELDS = ("cert_path", "key_path", "manifests_dir")

# Variables read from the environment, mapped to config keys
ENV_VARS = {
    "CLUSTER_NAME": "cluster_name",
    "NAMESPACE": "namespace",
    "BACKEND_URL": "backend_url",
    "DASHBOARD_PORT": "dashboard_port",
    "CERT_PATH": "cert_path",
    "KEY_PATH": "key_path",
    "EXPECTED_STATUS": "expected_status",
    "MANIFESTS_DIR": "manifests_dir",
    "TLS_SECRET_NAME": "tls_secret_name",
    "CREDENTIALS": "credentials",
    "READINESS_TIMEOUT": "readiness_timeout",
    "PROBE_TIMEOUT": "probe_timeout",
    "INTERACTIVE": "interactive",
}

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


class ConfigError(ValueError):
    """Configuration could not be loaded or failed validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        if self.errors:
            message = message + ":\n" + "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(message)


def find_config_file(start: Optional[Path] = None) -> Optional[Path]:
    """
    Find migration.yaml by searching up from the given (or current) directory.

    Returns:
        Path to migration.yaml or None if not found
    """
    current = Path(start) if start else Path.cwd()
    for parent in [current] + list(current.parents):
        candidate = parent / CONFIG_FILENAME
        if candidate.exists():
            return candidate
    return None


def _check_int(data: Dict[str, Any], key: str, errors: List[str], minimum: int = 0) -> None:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(f"{key}: expected an integer, got {value!r}")
    elif value < minimum:
        errors.append(f"{key}: must be >= {minimum}")


def validate_config(data: Any) -> List[str]:
    """
    Validate raw migration.yaml data.

    Returns list of validation errors (empty if valid).
    """
    if data is None:
        return []
    if not isinstance(data, dict):
        return ["configuration must be a mapping"]

    errors = []
    known = {f.name for f in fields(MigrationConfig)}
    for key in sorted(set(data) - known):
        errors.append(f"{key}: unknown setting")

    for key in STR_FIELDS + PATH_FIELDS:
        if key in data and (not isinstance(data[key], str) or not data[key].strip()):
            errors.append(f"{key}: expected a non-empty string")

    for key in INT_FIELDS:
        if key in data:
            _check_int(data, key, errors)

    if "dashboard_port" in data and isinstance(data["dashboard_port"], int):
        if not 0 < data["dashboard_port"] < 65536:
            errors.append("dashboard_port: must be between 1 and 65535")

    if "expected_status" in data and isinstance(data["expected_status"], int):
        if not 100 <= data["expected_status"] <= 599:
            errors.append("expected_status: must be an HTTP status code (100-599)")

    if "backend_url" in data and isinstance(data["backend_url"], str):
        if not data["backend_url"].startswith(("http://", "https://")):
            errors.append("backend_url: must start with http:// or https://")

    if "probe_timeout" in data:
        value = data["probe_timeout"]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            errors.append("probe_timeout: expected a positive number")

    if "interactive" in data and not isinstance(data["interactive"], bool):
        errors.append("interactive: expected true or false")

    if "credentials" in data:
        try:
            Credentials.parse(data["credentials"])
        except ValueError as e:
            errors.append(f"credentials: {e}")

    if "port_mappings" in data:
        if not isinstance(data["port_mappings"], list):
            errors.append("port_mappings: expected a list")
        else:
            for i, spec in enumerate(data["port_mappings"]):
                try:
                    PortMapping.parse(spec)
                except ValueError as e:
                    errors.append(f"port_mappings.{i}: {e}")

    if "delays" in data:
        delays = data["delays"]
        if not isinstance(delays, dict):
            errors.append("delays: expected a mapping")
        else:
            try:
                Delays.from_dict(delays)
            except (TypeError, ValueError) as e:
                errors.append(f"delays: {e}")

    if "required_tools" in data:
        tools = data["required_tools"]
        if not isinstance(tools, list) or not all(isinstance(t, str) for t in tools):
            errors.append("required_tools: expected a list of command names")

    return errors


def load_config_file(path: str, validate: bool = True) -> Dict[str, Any]:
    """
    Load raw settings from a migration.yaml file.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the file is not valid YAML or fails validation
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"{CONFIG_FILENAME} not found at {path}")

    with open(config_path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"{path} is not valid YAML: {e}") from e

    if validate:
        errors = validate_config(data)
        if errors:
            raise ConfigError(f"{path} validation failed", errors)

    return data or {}


def _coerce_env_value(key: str, raw: str) -> Any:
    if key in INT_FIELDS:
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"{ENV_PREFIX}{_env_name(key)}: expected an integer, got {raw!r}") from None
    if key == "probe_timeout":
        try:
            return float(raw)
        except ValueError:
            raise ConfigError(f"{ENV_PREFIX}PROBE_TIMEOUT: expected a number, got {raw!r}") from None
    if key == "interactive":
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ConfigError(f"{ENV_PREFIX}INTERACTIVE: expected a boolean, got {raw!r}")
    return raw


def _env_name(key: str) -> str:
    for name, mapped in ENV_VARS.items():
        if mapped == key:
            return name
    return key.upper()


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Collect K3SMIGRATE_* variables as raw config settings."""
    environ = os.environ if environ is None else environ
    settings = {}
    for name, key in ENV_VARS.items():
        raw = environ.get(ENV_PREFIX + name)
        if raw is None or raw == "":
            continue
        settings[key] = _coerce_env_value(key, raw)
    return settings


def load_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    search: bool = True,
) -> MigrationConfig:
    """
    Build the run configuration from defaults, migration.yaml and environment.

    Args:
        path: Explicit path to migration.yaml. Must exist when given.
        environ: Environment mapping (default: os.environ)
        search: Search up from the cwd for migration.yaml when path is None

    Returns:
        MigrationConfig

    Raises:
        FileNotFoundError: If an explicit path does not exist
        ConfigError: If any layer is invalid
    """
    settings: Dict[str, Any] = {}

    if path:
        settings.update(load_config_file(path))
    elif search:
        found = find_config_file()
        if found:
            settings.update(load_config_file(str(found)))

    settings.update(env_overrides(environ))

    errors = validate_config(settings)
    if errors:
        raise ConfigError("Invalid configuration", errors)

    return MigrationConfig.from_dict(settings)
