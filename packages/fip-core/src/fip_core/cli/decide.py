"""Dry-run decision CLI command.

- decide: Run the decider on a JSON node file without touching any API

The file holds a list of nodes, or an object with "nodes" and an optional
"current" node id:

    {"current": "101", "nodes": [{"id": "101", "health": "unhealthy"},
                                 {"id": "102", "health": "healthy"}]}
"""

import json
from pathlib import Path

import typer

from fip_core.decider import explain
from fip_protocols import Node, NodeHealth


def load_nodes(data: list | dict) -> tuple[list[Node], str | None]:
    """
    Parse the decide input.

    Returns:
        Tuple of (nodes, current node id)

    Raises:
        ValueError: On malformed input.
    """
    current = None
    if isinstance(data, dict):
        current = data.get("current")
        data = data.get("nodes", [])
    if not isinstance(data, list):
        raise ValueError("Expected a list of nodes")

    nodes = []
    for item in data:
        nodes.append(
            Node(
                id=str(item["id"]),
                address=item.get("address", ""),
                health=NodeHealth(item.get("health", NodeHealth.UNKNOWN.value)),
                eligible=bool(item.get("eligible", True)),
                name=item.get("name", ""),
            )
        )
    return nodes, None if current is None else str(current)


def decide_command(
    node_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with nodes"),
    current: str = typer.Option(None, "--current", "-c", help="Node currently holding the IP"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Show which node the floating IP should be on."""
    try:
        nodes, file_current = load_nodes(json.loads(node_file.read_text()))
    except (ValueError, KeyError, TypeError) as e:
        print(f"Error: invalid node file {node_file}: {e}")
        raise typer.Exit(1)

    decision = explain(nodes, current or file_current)

    if json_output:
        data = {
            "target": decision.target,
            "reason": decision.reason,
            "candidates": list(decision.candidates),
        }
        print(json.dumps(data, indent=2))
        return

    print(f"Target: {decision.target or '-'}")
    print(f"Reason: {decision.reason}")
    print(f"Candidates: {', '.join(decision.candidates) or '-'}")
