from __future__ import annotations

import importlib
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path
from typing import Any, cast

import pytest
import typer
from conftest import FakeGateway, zone_payload
from rich.console import Console
from typer.testing import CliRunner
from zonewatch import __version__
from zonewatch.cli import app
from zonewatch.cli._display import dashboard
from zonewatch.cli.status import find_zone
from zonewatch.config import get_settings
from zonewatch.credentials import SettingsStore
from zonewatch.engine.aggregator import EventAggregator
from zonewatch.engine.ddos import DDoSClassifier
from zonewatch.engine.scheduler import RefreshScheduler
from zonewatch.engine.state import DashboardState
from zonewatch.models import Zone

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    settings_file = tmp_path / "settings.json"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ZONEWATCH_SETTINGS_FILE", str(settings_file))
    monkeypatch.setenv("ZONEWATCH_CONFIG_PATHS", "[]")
    monkeypatch.delenv("CLOUDFLARE_API_TOKEN", raising=False)
    monkeypatch.delenv("CLOUDFLARE_ACCOUNT_ID", raising=False)
    get_settings.cache_clear()
    yield settings_file
    get_settings.cache_clear()


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("zones", "status", "paths", "ddos", "watch", "token"):
        assert command in result.output


def test_token_show_without_any_source() -> None:
    result = runner.invoke(app, ["token", "show"])
    assert result.exit_code == 0
    assert "No API token configured" in result.output


def test_token_show_reports_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "tok-123456789")
    result = runner.invoke(app, ["token", "show"])
    assert result.exit_code == 0
    assert "tok-" in result.output
    assert "123456789" not in result.output
    assert "environment" in result.output


def test_token_clear_removes_saved_token(isolated_settings: Path) -> None:
    SettingsStore(isolated_settings).save("saved", None)
    result = runner.invoke(app, ["token", "clear"])
    assert result.exit_code == 0
    assert not isolated_settings.exists()


def test_status_without_token_exits_nonzero() -> None:
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 1
    assert "Not authenticated" in result.output


def test_find_zone_by_id_or_name(zone: Zone) -> None:
    assert find_zone([zone], "zone-1") is zone
    assert find_zone([zone], "example.com") is zone
    with pytest.raises(typer.BadParameter):
        find_zone([zone], "missing.com")


def test_dashboard_renders_error_and_empty_sections(zone: Zone) -> None:
    state = DashboardState(
        zones=(zone,),
        selected_zone_id=zone.id,
        is_authenticated=True,
        error_message="Failed to load zone data: boom",
    )
    console = Console(record=True, width=120)
    console.print(dashboard(state))
    text = console.export_text()
    assert "example.com" in text
    assert "Failed to load zone data: boom" in text


def test_dashboard_header_uses_configured_lookback(
    zone: Zone, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("ZONEWATCH_LOOKBACK_DAYS", "3")
    get_settings.cache_clear()
    state = DashboardState(zones=(zone,), selected_zone_id=zone.id, blocked_count=1200)

    console = Console(record=True, width=120)
    console.print(dashboard(state))

    assert "1,200 blocked (3d)" in console.export_text()


def test_ddos_command_defaults_to_configured_window(
    zone: Zone, clock: Callable[[], datetime], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("ZONEWATCH_DDOS_LOOKBACK_DAYS", "12")
    get_settings.cache_clear()
    gateway = FakeGateway()
    gateway.zones = [zone]
    gateway.route("GetZoneDDoSAttacks", zone_payload(dosdAttackAnalyticsGroups=[]))
    gateway.route("GetDDoSFromFirewallEvents", zone_payload(firewallEventsAdaptiveGroups=[]))

    def build_scheduler() -> RefreshScheduler:
        aggregator = EventAggregator(cast(Any, gateway), clock=clock)
        classifier = DDoSClassifier(cast(Any, gateway), aggregator)
        return RefreshScheduler(
            cast(Any, gateway), aggregator, classifier, settings=get_settings()
        )

    # The package re-exports a ``status`` command that shadows the module attribute.
    status_module = importlib.import_module("zonewatch.cli.status")
    monkeypatch.setattr(status_module, "build_scheduler", build_scheduler)

    result = runner.invoke(app, ["ddos", "example.com"])

    assert result.exit_code == 0
    assert "in the last 12 days" in result.output
    _, variables = gateway.calls[0]
    assert variables["since"] == "2026-02-26T12:30:00.000Z"
