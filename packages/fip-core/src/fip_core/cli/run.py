"""Controller daemon CLI command.

- run: Start the reconciler and keep floating IPs on healthy nodes

Every option falls back to its FIP_* environment variable; anything not
given on the command line is read by Settings.
"""

import asyncio

import typer
from prometheus_client import start_http_server

from fip_core.config import load_settings
from fip_core.factory import build_controller
from fip_protocols import ConfigurationError


def run_command(
    floating_ip: list[str] = typer.Option(
        None,
        "--floating-ip",
        "-f",
        help="Floating IP id or address to manage (repeatable, env: FIP_FLOATING_IPS)",
    ),
    interval: float = typer.Option(
        None, "--interval", "-i", help="Seconds between regular cycles (env: FIP_POLL_INTERVAL_SECONDS)"
    ),
    redis_url: str = typer.Option(
        None, "--redis", help="Redis URL for the leader lease (env: FIP_REDIS_URL)"
    ),
    identity: str = typer.Option(
        None, "--identity", help="Replica identity for leader election (env: FIP_IDENTITY)"
    ),
    watch: bool = typer.Option(
        None, "--watch/--poll", help="Watch nodes or poll them every cycle (env: FIP_WATCH)"
    ),
    metrics_port: int = typer.Option(
        None, "--metrics-port", help="Expose Prometheus metrics on this port (env: FIP_METRICS_PORT)"
    ),
) -> None:
    """
    Run the controller daemon.

    Reconciles the configured floating IPs until interrupted with Ctrl+C
    or SIGTERM. Only the lease holder reassigns; other replicas observe.
    """
    try:
        settings = load_settings(
            floating_ips=floating_ip or None,
            poll_interval_seconds=interval,
            redis_url=redis_url,
            identity=identity,
            watch=watch,
            metrics_port=metrics_port,
        )
    except ConfigurationError as e:
        print(f"Error: {e}")
        raise typer.Exit(1)

    print(f"Starting fip-controller as {settings.identity}")
    print(f"  Floating IPs: {', '.join(settings.floating_ips)}")
    print(f"  Interval: {settings.poll_interval_seconds}s")
    print(f"  Cluster source: {'watch' if settings.watch else 'poll'}")
    print(f"  Lease store: {'redis' if settings.redis_url else 'in-memory'}")
    if settings.metrics_port is not None:
        start_http_server(settings.metrics_port)
        print(f"  Metrics: http://0.0.0.0:{settings.metrics_port}/metrics")
    print()
    print("Press Ctrl+C to stop")
    print()

    async def _run() -> None:
        controller = await build_controller(settings)
        await controller.run()

    try:
        asyncio.run(_run())
    except ConfigurationError as e:
        print(f"Error: {e}")
        raise typer.Exit(1)
