"""Command-line interface for dockyards-pdns."""

import argparse
import asyncio
import sys
from pathlib import Path

from .logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def _resolve_settings(args: argparse.Namespace):
    from .config import load_settings

    settings = load_settings(args.settings)

    overrides = {
        "config_map": args.config_map,
        "dockyards_namespace": args.dockyards_namespace,
        "kubeconfig_path": args.kubeconfig,
        "context": args.context,
        "workers": args.workers,
        "health_port": args.health_port,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    return settings.model_copy(update=overrides)


async def run_controller(settings, verbose: bool = False) -> int:
    """Connect to the cluster, load Dockyards config and run the operator.

    Returns:
        Process exit code.
    """
    from .api import create_server, initialize_manager
    from .config import DockyardsConfig
    from .consts import KEY_MANAGEMENT_DOMAIN
    from .errors import StoreError
    from .manager import Manager
    from .store import ResourceStore

    try:
        store = ResourceStore.connect(settings)
    except StoreError as e:
        logger.error("error connecting to Kubernetes", error=str(e))
        return 1

    try:
        dockyards_config = await DockyardsConfig.load(store, settings.config_map, settings.dockyards_namespace)
    except StoreError as e:
        logger.error("error getting dockyards config", error=str(e))
        store.close()
        return 1

    if KEY_MANAGEMENT_DOMAIN not in dockyards_config:
        logger.error(f"no {KEY_MANAGEMENT_DOMAIN} specified in dockyards config")
        store.close()
        return 1

    manager = Manager(store, dockyards_config, settings)
    initialize_manager(manager)

    server = create_server(settings.health_host, settings.health_port, verbose=verbose)

    stop_flag = asyncio.Event()
    operator = asyncio.create_task(manager.run(stop_flag))
    # The health server exits with the operator
    operator.add_done_callback(lambda _: setattr(server, "should_exit", True))

    exit_code = 0
    try:
        # Returns once uvicorn receives SIGINT or SIGTERM
        await server.serve()
    finally:
        stop_flag.set()
        try:
            await operator
        except Exception as e:
            logger.error("operator failed", error=str(e), error_type=type(e).__name__)
            exit_code = 1
        initialize_manager(None)
        store.close()

    return exit_code


def run_command(args: argparse.Namespace) -> None:
    """Run the cluster and zone operator."""
    from pydantic import ValidationError

    setup_logging(args.verbose)

    if args.settings and not Path(args.settings).exists():
        print(f"Settings file not found: {args.settings}", file=sys.stderr)
        sys.exit(1)

    try:
        settings = _resolve_settings(args)
    except (ValidationError, OSError) as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        sys.exit(1)

    logger.info("Starting dockyards-pdns",
                config_map=settings.config_map,
                dockyards_namespace=settings.dockyards_namespace,
                workers=settings.workers,
                health_port=settings.health_port)

    exit_code = asyncio.run(run_controller(settings, verbose=args.verbose))
    sys.exit(exit_code)


def init_config_command(args: argparse.Namespace) -> None:
    """Generate a sample settings file."""
    import yaml

    from .models import ControllerSettings

    sample = ControllerSettings(kubeconfig_path="~/.kube/config", context="management", workers=4).model_dump()
    config_yaml = yaml.dump(sample, default_flow_style=False, sort_keys=False)

    if args.output:
        output_path = Path(args.output)
        output_path.write_text(config_yaml)
        print(f"Sample settings written to {output_path}")
    else:
        print("Sample settings:\n")
        print(config_yaml)


def validate_config_command(args: argparse.Namespace) -> None:
    """Validate a settings file."""
    from .config import load_settings

    config_path = Path(args.settings)

    try:
        settings = load_settings(config_path)
    except Exception as e:
        print(f"✗ Settings file {config_path} is invalid: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"✓ Settings file {config_path} is valid")
    print("\nSettings summary:")
    print(f"  Dockyards ConfigMap: {settings.dockyards_namespace}/{settings.config_map}")
    print(f"  Kubeconfig: {settings.kubeconfig_path or 'in-cluster'}")
    print(f"  Concurrent objects: {settings.workers or 'unlimited'}")
    print(f"  Resync interval: {settings.resync_seconds}s")
    print(f"  Health server: {settings.health_host}:{settings.health_port}")


def version_command(args: argparse.Namespace) -> None:
    """Show version information."""
    from . import __version__
    print(f"dockyards-pdns {__version__}")


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="dockyards-pdns: PowerDNS zones for Dockyards clusters",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run the cluster and zone controllers")
    run_parser.add_argument(
        "--settings", "-s",
        help="Controller settings file path"
    )
    run_parser.add_argument(
        "--config-map",
        help="Dockyards ConfigMap name (default: dockyards-system)"
    )
    run_parser.add_argument(
        "--dockyards-namespace",
        help="Dockyards namespace (default: dockyards-system)"
    )
    run_parser.add_argument(
        "--kubeconfig",
        help="Kubeconfig path, in-cluster config when omitted"
    )
    run_parser.add_argument(
        "--context",
        help="Kubeconfig context"
    )
    run_parser.add_argument(
        "--workers",
        type=int,
        help="Objects handled concurrently (default: unlimited)"
    )
    run_parser.add_argument(
        "--health-port",
        type=int,
        help="Health server port (default: 8080)"
    )
    run_parser.set_defaults(func=run_command)

    init_parser = subparsers.add_parser("init-config", help="Generate a sample settings file")
    init_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: stdout)"
    )
    init_parser.set_defaults(func=init_config_command)

    validate_parser = subparsers.add_parser("validate-config", help="Validate a settings file")
    validate_parser.add_argument(
        "--settings", "-s",
        required=True,
        help="Controller settings file path"
    )
    validate_parser.set_defaults(func=validate_config_command)

    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.set_defaults(func=version_command)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
