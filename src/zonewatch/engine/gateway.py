"""Authenticated transport for the Cloudflare REST and GraphQL APIs."""

import logging
from collections.abc import Mapping
from typing import Any, Self

import aiohttp
from pydantic import BaseModel, ValidationError

from zonewatch.config import Settings, get_settings
from zonewatch.contracts import (
    AnalyticsData,
    ApiEnvelope,
    ApiErrorEnvelope,
    GraphQLEnvelope,
)
from zonewatch.credentials import CredentialResolver
from zonewatch.errors import (
    ApiError,
    DecodeError,
    HttpStatusError,
    InvalidEndpointError,
    InvalidResponseError,
    NotAuthenticatedError,
)

logger = logging.getLogger(__name__)

_LOG_BODY_LIMIT = 500


class ApiGateway:
    """REST pagination and GraphQL calls with uniform error mapping.

    The bearer token is read from the resolver on every request, so a token
    set through ``CredentialResolver.set_override`` applies to the very next
    call.
    """

    def __init__(
        self,
        resolver: CredentialResolver,
        *,
        settings: Settings | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._resolver = resolver
        self._base_url = settings.api_base_url.rstrip("/")
        self._graphql_url = settings.graphql_url
        self._per_page = settings.zones_per_page
        self._timeout = aiohttp.ClientTimeout(total=settings.request_timeout_seconds)
        self._session = session

    @property
    def resolver(self) -> CredentialResolver:
        return self._resolver

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: Any,
    ) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or bool(getattr(self._session, "closed", False)):
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        session = self._session
        if session is None:
            return
        if not bool(getattr(session, "closed", False)):
            await session.close()
        self._session = None

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
    ) -> bytes:
        token = self._resolver.token
        if not token:
            raise NotAuthenticatedError()
        if not url.startswith(("https://", "http://")):
            raise InvalidEndpointError(url)

        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        session = await self._ensure_session()
        try:
            async with session.request(
                method,
                url,
                params=dict(params) if params else None,
                json=json_body,
                headers=headers,
            ) as resp:
                status = resp.status
                body = await resp.read()
        except aiohttp.InvalidURL as e:
            raise InvalidEndpointError(url) from e
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.warning("Request to %s failed: %s", url, e)
            raise InvalidResponseError(str(e) or type(e).__name__) from e

        if not 200 <= status < 300:
            raise self._status_error(url, status, body)
        return body

    def _status_error(self, url: str, status: int, body: bytes) -> Exception:
        text = body[:_LOG_BODY_LIMIT].decode("utf-8", errors="replace")
        logger.warning("API error for %s: HTTP %s %s", url, status, text)
        try:
            payload = ApiErrorEnvelope.model_validate_json(body)
        except ValidationError:
            return HttpStatusError(status)
        if not payload.errors:
            return HttpStatusError(status)
        return ApiError(payload.errors[0].message, status=status)

    @staticmethod
    def _decode[M: BaseModel](model: type[M], url: str, body: bytes) -> M:
        try:
            return model.model_validate_json(body)
        except ValidationError as e:
            text = body[:_LOG_BODY_LIMIT].decode("utf-8", errors="replace")
            logger.debug("Failed to decode response from %s: %s", url, text)
            raise DecodeError(f"{e.error_count()} validation error(s)") from e

    async def get(
        self,
        path: str,
        result_type: Any,
        *,
        params: Mapping[str, Any] | None = None,
    ) -> ApiEnvelope[Any]:
        """Call a REST endpoint and decode the ``{success, result}`` envelope."""
        url = f"{self._base_url}{path}"
        body = await self._send("GET", url, params=params)
        return self._decode(ApiEnvelope[result_type], url, body)

    async def list_all[T](
        self,
        path: str,
        item_type: type[T],
        *,
        per_page: int | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> list[T]:
        """Fetch every page of a REST list endpoint.

        Keeps requesting while pages come back full; a short or empty page
        ends the walk.
        """
        per_page = per_page or self._per_page
        items: list[T] = []
        page = 1
        while True:
            page_params = {**(params or {}), "page": page, "per_page": per_page}
            envelope = await self.get(path, list[item_type], params=page_params)
            batch = envelope.result or []
            items.extend(batch)
            if len(batch) < per_page:
                break
            page += 1
        logger.debug("Fetched %d items from %s in %d page(s)", len(items), path, page)
        return items

    async def graphql[D: BaseModel](
        self,
        query: str,
        variables: Mapping[str, Any] | None = None,
        data_type: type[D] = AnalyticsData,
    ) -> GraphQLEnvelope[D]:
        """POST a query and decode ``{data, errors}``.

        Errors next to usable data are logged and the envelope is returned;
        errors without data raise ``ApiError``.
        """
        payload = {"query": query, "variables": dict(variables or {})}
        body = await self._send("POST", self._graphql_url, json_body=payload)
        envelope = self._decode(GraphQLEnvelope[data_type], self._graphql_url, body)

        if envelope.errors:
            messages = "; ".join(error.message for error in envelope.errors)
            if envelope.data is None:
                raise ApiError(envelope.errors[0].message)
            logger.warning("GraphQL returned partial data with errors: %s", messages)
        return envelope

    async def verify_token(self) -> bool:
        """Check the current token against the zones endpoint."""
        envelope = await self.get("/zones", list[Any], params={"per_page": 1})
        return envelope.success
