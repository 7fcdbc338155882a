"""Errors surfaced by the API gateway.

Every transport or decoding failure is mapped onto one of these before it
leaves ``zonewatch.engine.gateway``; callers never see raw ``aiohttp``
exceptions.
"""


class GatewayError(Exception):
    """Base exception for API gateway errors."""

    pass


class NotAuthenticatedError(GatewayError):
    """Raised when no bearer token could be resolved."""

    def __init__(self) -> None:
        super().__init__("Not authenticated. Please configure a Cloudflare API token.")


class InvalidEndpointError(GatewayError):
    """Raised when the request URL cannot be built or is rejected by the client."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Invalid endpoint: {url}")


class InvalidResponseError(GatewayError):
    """Raised when the transport fails or the response is malformed."""

    def __init__(self, detail: str = "Invalid response from API") -> None:
        self.detail = detail
        super().__init__(detail)


class HttpStatusError(GatewayError):
    """Raised for non-2xx responses without a structured error body."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"HTTP error: {status}")


class ApiError(GatewayError):
    """Raised when the API reports a structured error; carries the first message."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        self.message = message
        self.status = status
        super().__init__(message)


class DecodeError(GatewayError):
    """Raised when a 2xx body does not match the expected shape."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Failed to decode API response: {detail}")
