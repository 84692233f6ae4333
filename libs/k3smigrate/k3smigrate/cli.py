"""
CLI for k3smigrate - NGINX Ingress to Traefik migration demonstration.

Modes:
    demo        Run the full demonstration, then clean up (default)
    cleanup     Clean up resources and exit
    help        Show this help message
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

from .console import Output, configure_logging
from .runner import MigrationRunner, TeardownGuard
from .schema import ConfigError, load_config, validate_config
from .tools import K3dKubectlTools, MissingToolError, check_prerequisites
from .types import MigrationConfig, Mode

# Flag destinations that map directly onto MigrationConfig fields
OVERRIDE_FLAGS = (
    "cluster_name",
    "namespace",
    "backend_url",
    "dashboard_port",
    "cert_path",
    "key_path",
    "manifests_dir",
    "expected_status",
)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="k3smigrate",
        description=(
            "Demonstrate migrating Ingress traffic from the NGINX Ingress Controller "
            "to Traefik's NGINX provider without modifying Ingress resources"
        ),
        epilog=(
            "modes:\n"
            "  demo     Run the full demonstration (default)\n"
            "  cleanup  Clean up resources and exit\n"
            "  help     Show this help message"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "mode",
        nargs="?",
        default=Mode.DEMO.value,
        metavar="{demo,cleanup,help}",
        help="Run mode (default: demo)",
    )
    parser.add_argument(
        "-f", "--config",
        default=None,
        help="Path to migration.yaml (default: auto-detect)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every external command",
    )
    parser.add_argument(
        "-y", "--non-interactive",
        action="store_true",
        help="Do not pause between steps",
    )

    overrides = parser.add_argument_group("overrides")
    overrides.add_argument("--cluster-name", help="k3d cluster name (default: traefik-nginx)")
    overrides.add_argument("-n", "--namespace", help="Namespace for controllers and secret (default: default)")
    overrides.add_argument("--backend-url", help="URL probed at each step (default: http://whoami.docker.localhost)")
    overrides.add_argument("--dashboard-port", type=int, help="Traefik dashboard port (default: 8888)")
    overrides.add_argument("--cert", dest="cert_path", help="TLS certificate (default: ./certs/external-crt.pem)")
    overrides.add_argument("--key", dest="key_path", help="TLS key (default: ./certs/external-key.pem)")
    overrides.add_argument("--manifests-dir", help="Directory holding the manifest sets (default: manifests)")
    overrides.add_argument("--expected-status", type=int, help="Status code a probe must return (default: 200)")

    return parser


def build_config(args: argparse.Namespace) -> MigrationConfig:
    """
    Resolve the run configuration: defaults, migration.yaml, environment, flags.

    Raises:
        FileNotFoundError: If --config points to a missing file
        ConfigError: If any layer is invalid
    """
    config = load_config(args.config)

    raw: Dict[str, Any] = {}
    for name in OVERRIDE_FLAGS:
        value = getattr(args, name, None)
        if value is not None:
            raw[name] = value
    if args.non_interactive:
        raw["interactive"] = False

    if not raw:
        return config

    errors = validate_config(raw)
    if errors:
        raise ConfigError("Invalid command line options", errors)

    parsed = MigrationConfig.from_dict(raw)
    return config.with_overrides(**{name: getattr(parsed, name) for name in raw})


def print_unknown_mode(mode: str) -> None:
    print(f"Error: Unknown option: {mode}", file=sys.stderr)
    print("Use 'k3smigrate help' for usage information", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        mode = Mode(args.mode)
    except ValueError:
        print_unknown_mode(args.mode)
        return 1

    if mode == Mode.HELP:
        parser.print_help()
        return 0

    configure_logging(args.verbose)

    try:
        config = build_config(args)
    except (FileNotFoundError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output = Output(interactive=config.interactive)
    output.info("Checking prerequisites...")
    try:
        check_prerequisites(config.required_tools)
    except MissingToolError as e:
        output.error(str(e))
        return 1

    runner = MigrationRunner(config, K3dKubectlTools(), output)
    try:
        if mode == Mode.CLEANUP:
            TeardownGuard(runner.teardown).run()
        else:
            runner.run_demo()
    except KeyboardInterrupt:
        output.warning("Interrupted")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
