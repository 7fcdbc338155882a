from __future__ import annotations

from typing import Any, cast

import aiohttp
import pytest
from conftest import StubResponse, StubSession, make_resolver
from zonewatch.config import Settings
from zonewatch.engine.gateway import ApiGateway
from zonewatch.errors import (
    ApiError,
    DecodeError,
    HttpStatusError,
    InvalidEndpointError,
    InvalidResponseError,
    NotAuthenticatedError,
)
from zonewatch.models import Zone


def _zone(i: int) -> dict[str, Any]:
    return {"id": f"z{i}", "name": f"site{i}.com", "status": "active", "plan": {"name": "Free"}}


def _page(*zones: dict[str, Any]) -> StubResponse:
    return StubResponse(payload={"success": True, "result": list(zones), "errors": [], "messages": []})


def _gateway(settings: Settings, session: StubSession, token: str | None = "tok-abc") -> ApiGateway:
    return ApiGateway(make_resolver(token), settings=settings, session=cast(Any, session))


@pytest.mark.asyncio
async def test_list_all_stops_on_short_page(settings: Settings) -> None:
    session = StubSession(_page(_zone(1), _zone(2)), _page(_zone(3)))
    gateway = _gateway(settings, session)

    zones = await gateway.list_all("/zones", Zone)

    assert [z.id for z in zones] == ["z1", "z2", "z3"]
    assert len(session.calls) == 2
    assert [call["params"]["page"] for call in session.calls] == [1, 2]
    assert all(call["params"]["per_page"] == 2 for call in session.calls)
    assert session.calls[0]["url"] == "https://api.test/client/v4/zones"


@pytest.mark.asyncio
async def test_list_all_handles_empty_final_page(settings: Settings) -> None:
    session = StubSession(_page(_zone(1), _zone(2)), _page())
    zones = await _gateway(settings, session).list_all("/zones", Zone)
    assert len(zones) == 2
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_requests_carry_bearer_token(settings: Settings) -> None:
    session = StubSession(_page())
    await _gateway(settings, session).get("/zones", list[Zone])
    headers = session.calls[0]["headers"]
    assert headers["Authorization"] == "Bearer tok-abc"
    assert headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_missing_token_fails_before_any_request(settings: Settings) -> None:
    session = StubSession()
    with pytest.raises(NotAuthenticatedError):
        await _gateway(settings, session, token=None).get("/zones", list[Zone])
    assert session.calls == []


@pytest.mark.asyncio
async def test_override_applies_to_next_request(settings: Settings) -> None:
    session = StubSession(_page(), _page())
    gateway = _gateway(settings, session)
    await gateway.get("/zones", list[Zone])
    gateway.resolver.set_override("tok-new")
    await gateway.get("/zones", list[Zone])
    assert session.calls[1]["headers"]["Authorization"] == "Bearer tok-new"


@pytest.mark.asyncio
async def test_invalid_base_url_is_rejected(settings: Settings) -> None:
    bad = settings.model_copy(update={"api_base_url": "api.test/v4"})
    session = StubSession()
    with pytest.raises(InvalidEndpointError):
        await _gateway(bad, session).get("/zones", list[Zone])
    assert session.calls == []


@pytest.mark.asyncio
async def test_structured_error_body_becomes_api_error(settings: Settings) -> None:
    session = StubSession(
        StubResponse(
            status=403,
            payload={"success": False, "errors": [{"code": 9109, "message": "Invalid access token"}]},
        )
    )
    with pytest.raises(ApiError) as excinfo:
        await _gateway(settings, session).get("/zones", list[Zone])
    assert excinfo.value.message == "Invalid access token"
    assert excinfo.value.status == 403


@pytest.mark.asyncio
async def test_unstructured_error_body_becomes_http_status_error(settings: Settings) -> None:
    session = StubSession(StubResponse(status=502, body=b"<html>Bad gateway</html>"))
    with pytest.raises(HttpStatusError) as excinfo:
        await _gateway(settings, session).get("/zones", list[Zone])
    assert excinfo.value.status == 502


@pytest.mark.asyncio
async def test_transport_failure_becomes_invalid_response(settings: Settings) -> None:
    session = StubSession(aiohttp.ClientConnectionError("connection reset"))
    with pytest.raises(InvalidResponseError):
        await _gateway(settings, session).get("/zones", list[Zone])


@pytest.mark.asyncio
async def test_malformed_body_becomes_decode_error(settings: Settings) -> None:
    session = StubSession(StubResponse(body=b'{"result": []}'))
    with pytest.raises(DecodeError):
        await _gateway(settings, session).get("/zones", list[Zone])


@pytest.mark.asyncio
async def test_graphql_posts_query_and_variables(settings: Settings) -> None:
    session = StubSession(StubResponse(payload={"data": {"viewer": {"zones": []}}}))
    envelope = await _gateway(settings, session).graphql("query Q { viewer }", {"zoneTag": "z1"})

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://api.test/client/v4/graphql"
    assert call["json"] == {"query": "query Q { viewer }", "variables": {"zoneTag": "z1"}}
    assert envelope.data is not None
    assert envelope.data.viewer is not None
    assert envelope.data.viewer.zones == []


@pytest.mark.asyncio
async def test_graphql_errors_without_data_raise(settings: Settings) -> None:
    session = StubSession(
        StubResponse(payload={"data": None, "errors": [{"message": "not authorized for dataset"}]})
    )
    with pytest.raises(ApiError, match="not authorized for dataset"):
        await _gateway(settings, session).graphql("query Q { viewer }")


@pytest.mark.asyncio
async def test_graphql_errors_with_data_are_tolerated(settings: Settings) -> None:
    session = StubSession(
        StubResponse(
            payload={
                "data": {"viewer": {"zones": [{}]}},
                "errors": [{"message": "partial", "path": ["viewer", "zones", 0]}],
            }
        )
    )
    envelope = await _gateway(settings, session).graphql("query Q { viewer }")
    assert envelope.errors is not None
    assert envelope.data is not None


@pytest.mark.asyncio
async def test_verify_token_reports_envelope_success(settings: Settings) -> None:
    session = StubSession(StubResponse(payload={"success": False, "result": []}))
    assert await _gateway(settings, session).verify_token() is False
    assert session.calls[0]["params"] == {"per_page": 1}


@pytest.mark.asyncio
async def test_close_releases_session(settings: Settings) -> None:
    session = StubSession()
    async with _gateway(settings, session):
        pass
    assert session.closed is True
