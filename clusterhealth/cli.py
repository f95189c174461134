"""
Cluster Health Monitor - CLI Interface

Command-line entry points for the periodic monitor and the one-shot node
checker.
"""

import logging
import signal
import sys
import threading

import click
from rich.console import Console
from rich.table import Table

from . import __version__, config
from .checker import ClusterHealthError, ConfigError, default_registry
from .checker.loader import parse_from_file
from .kube import KubeClient, load_kube_config
from .metrics import start_metrics_server
from .noderunner import (
    InMemoryStatusStore, KubernetesStatusStore, NodeCheckerRunner,
    default_node_checkers, read_node_name,
)
from .scheduler import CheckerScheduler, build_checker_schedules

logger = logging.getLogger(__name__)

console = Console()

STATUS_STYLES = {
    "Healthy": "green",
    "Unhealthy": "red",
    "Unknown": "yellow",
}


def configure_logging(level: str) -> None:
    """Configure root logging for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)


def install_stop_handlers(stop_event: threading.Event) -> None:
    """Set ``stop_event`` on SIGTERM/SIGINT."""
    def handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        stop_event.set()

    signal.signal(signal.SIGTERM, handler)
    signal.signal(signal.SIGINT, handler)


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=config.LOG_LEVEL, show_default=True, help="Logging level")
def cli(log_level: str):
    """Cluster Health Monitor - tri-state health checks for Kubernetes clusters."""
    configure_logging(log_level)


@cli.command()
@click.option("--config", "config_path", default=config.CONFIG_PATH, show_default=True,
              help="Path of the checker configuration file")
@click.option("--metrics-port", default=config.METRICS_PORT, show_default=True, type=int,
              help="Port for the Prometheus /metrics endpoint (0 disables it)")
@click.option("--kubeconfig", default=config.KUBECONFIG or None, help="Path to a kubeconfig file")
def monitor(config_path: str, metrics_port: int, kubeconfig: str):
    """Run the configured checkers on their schedules until stopped."""
    try:
        monitor_config = parse_from_file(config_path)
        load_kube_config(kubeconfig)
        registry = default_registry(kube=KubeClient(), node_name=config.NODE_NAME)
        schedules = build_checker_schedules(monitor_config, registry)
    except (ClusterHealthError, RuntimeError) as e:
        console.print(f"[red]Failed to start monitor: {e}[/red]")
        sys.exit(1)

    if metrics_port:
        try:
            start_metrics_server(metrics_port)
        except OSError as e:
            console.print(f"[red]Failed to start metrics server: {e}[/red]")
            sys.exit(1)

    stop_event = threading.Event()
    install_stop_handlers(stop_event)

    try:
        CheckerScheduler(schedules).start(stop_event)
    except ClusterHealthError as e:
        console.print(f"[red]Checker failed: {e}[/red]")
        sys.exit(1)


@cli.command("node-check")
@click.option("--name", "cr_name", required=True, help="Name of the CheckNodeHealth resource")
@click.option("--kubeconfig", default=config.KUBECONFIG or None, help="Path to a kubeconfig file")
@click.option("--dry-run", is_flag=True, help="Keep results in memory instead of updating the resource")
@click.option("--node", "node_override", default=None, help="Node to check (required with --dry-run)")
@click.option("--attempts", default=config.MAX_RETRY_ATTEMPTS, show_default=True, type=int,
              help="Attempts per checker")
@click.option("--retry-delay", default=config.RETRY_DELAY_SECONDS, show_default=True, type=float,
              help="Seconds between attempts")
def node_check(cr_name: str, kubeconfig: str, dry_run: bool, node_override: str,
               attempts: int, retry_delay: float):
    """Run the node checkers once and record results on the CheckNodeHealth resource."""
    if dry_run and not node_override:
        raise click.UsageError("--node is required with --dry-run")

    try:
        load_kube_config(kubeconfig)
        kube = KubeClient()
        if dry_run:
            store = InMemoryStatusStore({cr_name: {"spec": {"nodeRef": {"name": node_override}}}})
        else:
            store = KubernetesStatusStore(kube)
        node_name = node_override or read_node_name(store, cr_name)
        logger.info(f"Starting node checker for {cr_name} (node={node_name})")

        runner = NodeCheckerRunner(
            store=store,
            cr_name=cr_name,
            checkers=default_node_checkers(kube, node_name),
            max_attempts=attempts,
            retry_delay=retry_delay,
        )
        status = runner.run()
    except (ClusterHealthError, RuntimeError, ValueError) as e:
        console.print(f"[red]Node checker failed: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"CheckNodeHealth {cr_name} ({status.node_ref})")
    table.add_column("Checker")
    table.add_column("Status")
    table.add_column("Code")
    table.add_column("Message")
    for snapshot in status.result_list():
        style = STATUS_STYLES.get(snapshot.status.value, "white")
        table.add_row(
            snapshot.name,
            f"[{style}]{snapshot.status.value}[/{style}]",
            snapshot.error_code,
            snapshot.message,
        )
    console.print(table)


@cli.command()
@click.option("--config", "config_path", default=config.CONFIG_PATH, show_default=True,
              help="Path of the checker configuration file")
def validate(config_path: str):
    """Validate a checker configuration file."""
    try:
        monitor_config = parse_from_file(config_path)
    except ConfigError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(1)

    table = Table(title=f"Checkers in {config_path}")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Interval")
    table.add_column("Timeout")
    for chk in monitor_config.checkers:
        table.add_row(
            chk.name,
            chk.type.value,
            f"{chk.interval:g}s" if chk.interval > 0 else "once",
            f"{chk.timeout:g}s" if chk.timeout > 0 else "none",
        )
    console.print(table)


if __name__ == "__main__":
    cli()
