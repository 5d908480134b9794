"""Read-only status CLI command.

- status: Observe once and show nodes, assignments and pending decisions

Never reassigns and never touches the leader lease.
"""

import asyncio
import json
from dataclasses import asdict

import typer
from rich.console import Console
from rich.table import Table

from fip_core.config import load_settings
from fip_core.decider import explain
from fip_core.factory import build_controller
from fip_protocols import ApiError, ClusterReadError, ConfigurationError, FloatingIP, NodeHealth

HEALTH_STYLE = {
    NodeHealth.HEALTHY: "green",
    NodeHealth.UNHEALTHY: "red",
    NodeHealth.UNKNOWN: "yellow",
}


def status_command(
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Show cluster nodes, current assignments and what the controller would do."""

    async def _status() -> None:
        settings = load_settings(watch=False)
        controller = await build_controller(settings)
        try:
            nodes = await controller.source.current_nodes()
            floating_ips = []
            for ip_id in controller.reconciler.config.floating_ips:
                current = await controller.cloud.get_assignment(ip_id)
                decision = explain(nodes, current)
                ip = FloatingIP(id=ip_id, current=current, desired=decision.target)
                floating_ips.append(
                    asdict(ip) | {"reason": decision.reason, "candidates": list(decision.candidates)}
                )
        finally:
            await controller.aclose()

        if json_output:
            data = {"nodes": [asdict(n) for n in nodes], "floating_ips": floating_ips}
            print(json.dumps(data, indent=2, default=str))
            return

        console = Console()
        node_table = Table(title="Nodes")
        node_table.add_column("ID", justify="right", style="cyan")
        node_table.add_column("Name")
        node_table.add_column("Address")
        node_table.add_column("Health")
        node_table.add_column("Eligible", justify="center")
        for n in nodes:
            style = HEALTH_STYLE[n.health]
            node_table.add_row(
                n.id,
                n.name or "-",
                n.address or "-",
                f"[{style}]{n.health.value}[/{style}]",
                "yes" if n.eligible else "[red]no[/red]",
            )
        console.print(node_table)

        ip_table = Table(title="Floating IPs")
        ip_table.add_column("ID", justify="right", style="cyan")
        ip_table.add_column("Current", justify="right")
        ip_table.add_column("Desired", justify="right")
        ip_table.add_column("Reason")
        for ip in floating_ips:
            moving = ip["desired"] != ip["current"]
            desired = ip["desired"] or "-"
            ip_table.add_row(
                ip["id"],
                ip["current"] or "-",
                f"[bold yellow]{desired}[/bold yellow]" if moving else desired,
                ip["reason"],
            )
        console.print(ip_table)

    try:
        asyncio.run(_status())
    except (ConfigurationError, ClusterReadError, ApiError) as e:
        print(f"Error: {e}")
        raise typer.Exit(1)
