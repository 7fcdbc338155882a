"""Token management commands."""

import asyncio

import typer

from zonewatch.cli._console import dim, error_panel, nl, setup_logging, success
from zonewatch.config import get_settings
from zonewatch.credentials import CredentialResolver, SettingsStore
from zonewatch.engine.scheduler import build_scheduler
from zonewatch.errors import GatewayError

token_app = typer.Typer(
    help="Manage the Cloudflare API token.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _mask(token: str) -> str:
    return f"{token[:4]}{'•' * min(max(len(token) - 4, 0), 16)}"


@token_app.command("set")
def set_token(
    token: str = typer.Argument(..., help="Cloudflare API token"),
    account_id: str | None = typer.Option(
        None, "--account-id", help="Account id for account-level DDoS analytics"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Validate a token against the API and save it."""
    setup_logging(verbose=verbose)

    async def _run() -> bool:
        scheduler = build_scheduler()
        try:
            return await scheduler.save_credential(token, account_id)
        finally:
            await scheduler.close()

    try:
        is_valid = asyncio.run(_run())
    except ValueError as e:
        error_panel(str(e), title="Invalid input")
        raise typer.Exit(1)
    except GatewayError as e:
        error_panel(f"Failed to validate token: {e}")
        raise typer.Exit(1)

    nl()
    if not is_valid:
        error_panel(
            "Invalid token. Please check your API token and try again.",
            title="Token rejected",
        )
        raise typer.Exit(1)
    success(f"Token saved to {get_settings().settings_file}")
    nl()


@token_app.command("show")
def show_token() -> None:
    """Show which source the active token resolves from."""
    record = CredentialResolver.from_settings(get_settings()).resolve()
    nl()
    if record is None:
        dim("No API token configured")
    else:
        success(f"{_mask(record.token)}  [dim]from {record.source}[/dim]")
        if record.account_id:
            dim(f"account {record.account_id}")
    nl()


@token_app.command("clear")
def clear_token() -> None:
    """Remove the saved token (environment and config files are untouched)."""
    settings = get_settings()
    SettingsStore(settings.settings_file).clear()
    nl()
    success(f"Removed saved token from {settings.settings_file}")
    nl()
