"""Errors raised by the gateway client and understood by the flow."""


class GatewayError(Exception):
    """Base class for anything that went wrong talking to the payment gateway."""

    kind = "gateway"


class TransportError(GatewayError):
    """Non-success HTTP status, or the request never got a response."""

    kind = "transport"

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DecodeError(GatewayError):
    """Response body was not JSON, or an expected field was missing or empty."""

    kind = "decode"


ERROR_TYPES: dict[str, type[GatewayError]] = {
    TransportError.__name__: TransportError,
    DecodeError.__name__: DecodeError,
}
