"""fip-controller CLI - keeps floating IPs on healthy cluster nodes."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from fip_core.cli.decide import decide_command
from fip_core.cli.run import run_command
from fip_core.cli.status import status_command

app = typer.Typer(
    name="fip-controller",
    help="Keep floating IPs assigned to a healthy cluster node",
    no_args_is_help=True,
)

app.command("run")(run_command)
app.command("status")(status_command)
app.command("decide")(decide_command)


@app.callback()
def configure_logging(
    log_level: str = typer.Option(
        "INFO", "--log-level", "-l", envvar="FIP_LOG_LEVEL", help="Log level (DEBUG, INFO, WARNING)"
    ),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
