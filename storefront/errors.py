"""
Cart Errors

Centralized error messages (avoids string duplication, SonarQube S1192)
and the exception taxonomy shared by the transport, the edge routes and
the client store.
"""

# Validation errors
ERROR_PRODUCT_REQUIRED = "Product data is required"
ERROR_QUANTITY_POSITIVE = "Quantity must be greater than 0"
ERROR_QUANTITY_INVALID = "Valid quantity is required"
ERROR_LINE_ID_REQUIRED = "Line ID is required"
ERROR_INVALID_REQUEST = "Invalid request"

# Upstream errors passed through to the browser
ERROR_NOT_FOUND = "Not found"
ERROR_CONFLICT = "Cart was modified, please retry"
ERROR_UNPROCESSABLE = "Requested quantity is not available"

# Operation failures (shown to the user)
ERROR_FETCH_CART = "Failed to fetch cart"
ERROR_ADD_ITEM = "Failed to add item to cart"
ERROR_UPDATE_ITEM = "Failed to update quantity"
ERROR_REMOVE_ITEM = "Failed to remove item"
ERROR_INTERNAL = "Internal server error"

# Upstream statuses the browser can act on; everything else becomes a 500
PASSTHROUGH_STATUS_MESSAGES: dict[int, str] = {
    400: ERROR_INVALID_REQUEST,
    404: ERROR_NOT_FOUND,
    409: ERROR_CONFLICT,
    422: ERROR_UNPROCESSABLE,
}


class CartError(Exception):
    """Base error for the cart subsystem."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(CartError):
    """Malformed or missing input, raised before any network call."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class UpstreamError(CartError):
    """Non-success response from the authoritative engine (or the edge)."""

    def __init__(
        self,
        status_code: int,
        message: str = ERROR_INTERNAL,
        detail: str | None = None,
        set_cookies: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message, status_code=status_code)
        # Server-side only, never returned to the browser
        self.detail = detail
        self.set_cookies = set_cookies

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


class TransportError(CartError):
    """Network failure or a response body that is not a valid cart."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


def upstream_error_status(status_code: int) -> tuple[int, str | None]:
    """
    Map an upstream status to the status and message shown to the browser.

    Returns (status, message). message is None when the caller should use
    its own operation-specific failure text (opaque upstream failure).
    """
    if status_code in PASSTHROUGH_STATUS_MESSAGES:
        return status_code, PASSTHROUGH_STATUS_MESSAGES[status_code]
    return 500, None


__all__ = [
    "CartError",
    "TransportError",
    "UpstreamError",
    "ValidationError",
    "upstream_error_status",
]
