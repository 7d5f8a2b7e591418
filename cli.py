#!/usr/bin/env python3
"""
Spark Sync CLI.

Primary entry point for all application operations.
Use --service to select what to run.

Usage:
    python cli.py --help
    python cli.py --service demo --verbose
    python cli.py --service demo --latency 0.2
    python cli.py --service demo --backend http
    python cli.py --service health --debug
    python cli.py --service config
    python cli.py --service test --test-type unit
"""

import asyncio
import subprocess
import sys
from pathlib import Path

import click
import structlog

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from modules.spark.core.logging import get_logger, setup_logging


def validate_project_root() -> Path:
    """Validate that we're running from the project root."""
    if not (PROJECT_ROOT / ".project_root").exists():
        click.echo(
            click.style("Error: .project_root not found. Run from project root.", fg="red"),
            err=True,
        )
        sys.exit(1)
    return PROJECT_ROOT


@click.command()
@click.option(
    "--service", "-s",
    type=click.Choice(["demo", "health", "config", "test", "info"]),
    default="info",
    help="Service or command to run.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output (INFO level logging).",
)
@click.option(
    "--debug", "-d",
    is_flag=True,
    help="Enable debug output (DEBUG level logging).",
)
@click.option(
    "--backend",
    type=click.Choice(["memory", "http"]),
    default=None,
    help="Remote store backend for the demo. Defaults to remote.yaml.",
)
@click.option(
    "--latency",
    default=0.0,
    type=float,
    help="Simulated remote latency in seconds (memory backend only).",
)
@click.option(
    "--test-type",
    type=click.Choice(["all", "unit", "integration"]),
    default="all",
    help="Test type to run.",
)
@click.option(
    "--coverage",
    is_flag=True,
    help="Run tests with coverage.",
)
def main(
    service: str,
    verbose: bool,
    debug: bool,
    backend: str | None,
    latency: float,
    test_type: str,
    coverage: bool,
) -> None:
    """
    Spark Sync CLI.

    Use --service to select what to run.

    \b
    Examples:
        python cli.py --service demo --verbose
        python cli.py --service demo --latency 0.2
        python cli.py --service health --debug
        python cli.py --service config
        python cli.py --service test --test-type unit --coverage
        python cli.py --service info
    """
    validate_project_root()

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    setup_logging(level=log_level, format_type="console")

    structlog.contextvars.bind_contextvars(source="cli")

    logger = get_logger(__name__)

    logger.debug("CLI invoked", extra={"service": service, "log_level": log_level})

    if service == "demo":
        run_demo(logger, backend, latency)
    elif service == "health":
        check_health(logger)
    elif service == "config":
        show_config(logger)
    elif service == "test":
        run_tests(logger, test_type, coverage)
    elif service == "info":
        show_info(logger)


def _print_store(title: str, store) -> None:
    """Render the local store contents."""
    click.echo(click.style(f"\n{title}", bold=True))
    if not len(store):
        click.echo("  (empty)")
        return
    for position, item in enumerate(store, start=1):
        marker = ("[x]" if item.completed else "[ ]") if item.is_task else " - "
        remote = item.remote_id[:8] if item.remote_id else "pending"
        categories = ", ".join(item.categories)
        click.echo(f"  {position}. {marker} {item.display_title:<30}  {remote:<8}  {categories}")


def run_demo(logger, backend: str | None, latency: float) -> None:
    """Walk through optimistic capture, confirmation, delete and sign-out."""
    try:
        asyncio.run(_demo(logger, backend, latency))
    except Exception as e:
        logger.error("Demo failed", extra={"error": str(e)})
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


async def _demo(logger, backend: str | None, latency: float) -> None:
    from modules.spark.remote import HttpRemoteStore, InMemoryRemoteStore, create_remote_store
    from modules.spark.services import LocalIdentityProvider, NoteSyncService

    if backend == "memory" or (backend is None and latency > 0):
        remote = InMemoryRemoteStore(latency=latency)
    else:
        remote = create_remote_store(backend)

    identity = LocalIdentityProvider()
    service = NoteSyncService(remote, identity)
    service.publisher.subscribe(
        lambda event: click.echo(click.style(f"  ! {event.message}", fg="red")),
    )
    service.start()

    owner_id = identity.sign_in_anonymously()
    click.echo(f"Signed in as {owner_id}")

    for text in ("Buy milk", "Prepare slides for the work meeting", "Family dinner on Sunday"):
        service.create_item(text)
    _print_store("After optimistic capture", service.store)

    await service.drain()
    _print_store("After remote confirmation", service.store)

    tasks = [item for item in service.store if item.is_task]
    if tasks:
        service.toggle_complete(tasks[0].local_id)
    others = [item for item in service.store if not item.is_task]
    if others:
        service.delete_item(others[0].local_id)
    _print_store("After toggle and delete (optimistic)", service.store)

    await service.drain()
    _print_store("After remote delete", service.store)

    identity.sign_out()
    _print_store("After sign-out", service.store)

    await service.close()
    if isinstance(remote, HttpRemoteStore):
        await remote.close()

    logger.info("Demo finished", extra={"owner_id": owner_id})


def check_health(logger) -> None:
    """Check application health by testing imports and configuration."""
    click.echo("Checking application health...\n")

    checks = []

    # Check 1: Core imports
    try:
        from modules.spark.core.config import get_app_config
        from modules.spark.core.exceptions import ApplicationError
        checks.append(("Core imports", True, None))
        logger.debug("Core imports successful")
    except Exception as e:
        checks.append(("Core imports", False, str(e)))
        logger.error("Core imports failed", extra={"error": str(e)})

    # Check 2: Configuration loading
    try:
        app_config = get_app_config()
        app_name = app_config.application.name
        checks.append(("YAML configuration", True, f"App: {app_name}"))
        logger.debug("Configuration loaded", extra={"app_name": app_name})
    except Exception as e:
        checks.append(("YAML configuration", False, str(e)))
        logger.error("Configuration failed", extra={"error": str(e)})

    # Check 3: Secrets
    try:
        from modules.spark.core.config import get_settings
        has_token = bool(get_settings().remote_api_token)
        checks.append(("Environment settings", True, f"Remote token: {'set' if has_token else 'not set'}"))
    except Exception as e:
        checks.append(("Environment settings", False, str(e)))
        logger.warning("Environment settings not configured")

    # Check 4: Remote store backend
    try:
        from modules.spark.remote import create_remote_store
        remote = create_remote_store()
        checks.append(("Remote store", True, type(remote).__name__))
    except Exception as e:
        checks.append(("Remote store", False, str(e)))
        logger.error("Remote store failed", extra={"error": str(e)})

    # Check 5: Sync service
    try:
        from modules.spark.services import NoteSyncService
        checks.append(("Sync service", True, NoteSyncService.__name__))
    except Exception as e:
        checks.append(("Sync service", False, str(e)))
        logger.error("Sync service failed", extra={"error": str(e)})

    click.echo("Health Check Results:")
    click.echo("-" * 50)

    all_passed = True
    for name, passed, detail in checks:
        status = click.style("✓ PASS", fg="green") if passed else click.style("✗ FAIL", fg="red")
        detail_str = f" ({detail})" if detail else ""
        click.echo(f"  {status}  {name}{detail_str}")
        if not passed:
            all_passed = False

    click.echo("-" * 50)

    if all_passed:
        click.echo(click.style("\nAll checks passed!", fg="green"))
    else:
        click.echo(click.style("\nSome checks failed. See details above.", fg="yellow"))
        sys.exit(1)


def show_config(logger) -> None:
    """Display loaded configuration."""
    click.echo("Application Configuration:\n")

    try:
        from modules.spark.core.config import get_app_config

        app_config = get_app_config()

        sections = [
            ("Application Settings", app_config.application),
            ("Logging Settings", app_config.logging),
            ("Feature Flags", app_config.features),
            ("Sync Settings", app_config.sync),
            ("Remote Store Settings", app_config.remote),
        ]
        for title, schema in sections:
            click.echo(f"{title} (from YAML):")
            click.echo("-" * 40)
            _echo_mapping(schema.model_dump(), indent=2)
            click.echo()

        logger.info("Configuration displayed successfully")

    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        click.echo(click.style(f"Error loading configuration: {e}", fg="red"))
        sys.exit(1)


def _echo_mapping(values: dict, indent: int) -> None:
    for key, value in values.items():
        if isinstance(value, dict):
            click.echo(f"{' ' * indent}{key}:")
            _echo_mapping(value, indent + 2)
        else:
            click.echo(f"{' ' * indent}{key}: {value}")


def run_tests(logger, test_type: str, coverage: bool) -> None:
    """Run the test suite."""
    logger.info("Running tests", extra={"type": test_type, "coverage": coverage})

    cmd = [sys.executable, "-m", "pytest"]

    if test_type == "unit":
        cmd.append("tests/unit")
    elif test_type == "integration":
        cmd.append("tests/integration")
    else:
        cmd.append("tests/")

    cmd.append("-v")

    if coverage:
        cmd.extend(["--cov=modules/spark", "--cov-report=term-missing"])

    click.echo(f"Running: {' '.join(cmd)}\n")

    try:
        result = subprocess.run(cmd)
        sys.exit(result.returncode)
    except FileNotFoundError:
        logger.error("pytest not found. Install with: pip install -e '.[test]'")
        sys.exit(1)


def show_info(logger) -> None:
    """Display application information."""
    from modules.spark.core.config import get_app_config

    try:
        application = get_app_config().application
    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        click.echo(click.style(f"Error loading configuration: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(f"{application.name} v{application.version}")
    click.echo(application.description)
    click.echo(f"Environment: {application.environment}")
    click.echo("\nServices: demo, health, config, test, info")
    click.echo("Run 'python cli.py --help' for options.")


if __name__ == "__main__":
    main()
