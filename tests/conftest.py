from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
from zonewatch.config import Settings
from zonewatch.contracts import AnalyticsData, GraphQLEnvelope
from zonewatch.credentials import CredentialResolver
from zonewatch.models import CredentialRecord, Zone

FIXED_NOW = datetime(2026, 3, 10, 12, 30, 0, tzinfo=UTC)


class StaticSource:
    def __init__(self, name: str, record: CredentialRecord | None) -> None:
        self.name = name
        self.record = record
        self.reads = 0

    def read(self) -> CredentialRecord | None:
        self.reads += 1
        return self.record


class StubResponse:
    def __init__(
        self,
        *,
        status: int = 200,
        payload: Any = None,
        body: bytes | None = None,
    ) -> None:
        self.status = status
        self._body = body if body is not None else json.dumps(payload).encode()

    async def __aenter__(self) -> StubResponse:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: Any,
    ) -> None:
        return None

    async def read(self) -> bytes:
        return self._body


class StubSession:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses: StubResponse | BaseException) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> StubResponse:
        self.calls.append(
            {
                "method": method,
                "url": url,
                "params": params,
                "json": json,
                "headers": headers,
            }
        )
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


GraphQLHandler = Callable[[str, dict[str, Any]], Any]


class FakeGateway:
    """Routes GraphQL calls to handlers by a substring of the query."""

    def __init__(self, resolver: CredentialResolver | None = None) -> None:
        self.resolver = resolver or make_resolver("tok-test")
        self.routes: list[tuple[str, GraphQLHandler]] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.zones: list[Zone] = []
        self.token_valid = True
        self.closed = False

    def route(self, marker: str, handler: GraphQLHandler | Any) -> None:
        if not callable(handler):
            payload = handler
            handler = lambda query, variables: payload  # noqa: E731
        self.routes.append((marker, handler))

    async def graphql(
        self, query: str, variables: dict[str, Any] | None = None, data_type: Any = None
    ) -> GraphQLEnvelope[AnalyticsData]:
        variables = dict(variables or {})
        self.calls.append((query, variables))
        for marker, handler in self.routes:
            if marker in query:
                result = handler(query, variables)
                if isinstance(result, BaseException):
                    raise result
                return GraphQLEnvelope[AnalyticsData].model_validate(result)
        raise AssertionError(f"no route for query:\n{query}")

    async def list_all(self, path: str, item_type: Any, **kwargs: Any) -> list[Any]:
        assert path == "/zones"
        return list(self.zones)

    async def verify_token(self) -> bool:
        return self.token_valid

    async def close(self) -> None:
        self.closed = True


def make_resolver(token: str | None, account_id: str | None = None) -> CredentialResolver:
    record = CredentialRecord(token=token, account_id=account_id, source="test") if token else None
    return CredentialResolver([StaticSource("test", record)])


def zone_payload(**datasets: Any) -> dict[str, Any]:
    return {"data": {"viewer": {"zones": [datasets]}}}


def account_payload(**datasets: Any) -> dict[str, Any]:
    return {"data": {"viewer": {"accounts": [datasets]}}}


def firewall_group(count: int, **dimensions: Any) -> dict[str, Any]:
    return {"count": count, "dimensions": dimensions}


@pytest.fixture
def zone() -> Zone:
    return Zone(id="zone-1", name="example.com", status="active", plan={"name": "Pro"})


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        api_base_url="https://api.test/client/v4",
        graphql_url="https://api.test/client/v4/graphql",
        settings_file=tmp_path / "settings.json",
        config_paths=[],
        zones_per_page=2,
        refresh_interval_seconds=3600,
        zone_debounce_seconds=0.01,
    )


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW
