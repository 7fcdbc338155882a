"""zonewatch CLI."""

import typer

from zonewatch.cli._console import console
from zonewatch.cli.status import ddos, paths, status, zones_cmd
from zonewatch.cli.token import token_app
from zonewatch.cli.watch import watch

app = typer.Typer(
    name="zonewatch",
    help="Security events and DDoS detection for Cloudflare zones.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        from zonewatch import __version__

        console.print(f"[bold]zonewatch[/bold] [dim]{__version__}[/dim]")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version",
    ),
) -> None:
    """Security events and DDoS detection for Cloudflare zones."""


# Register commands
app.command("zones")(zones_cmd)
app.command()(status)
app.command()(paths)
app.command()(ddos)
app.command()(watch)
app.add_typer(token_app, name="token")
