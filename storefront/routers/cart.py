"""
Edge Cart Router

Proxies the four cart operations to the authoritative engine.

Session handling:
- the inbound Cookie header is forwarded verbatim (absent = new session)
- every Set-Cookie the engine returns is appended to the outbound response
  one by one, in order, with its attributes untouched

Every handler answers with the cart JSON or a {"error": {"message"}} envelope;
no exception escapes to the framework.
"""
from typing import Awaitable, Callable, Iterable

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.cart import CartResult, EngineClient, Product
from storefront.errors import (
    ERROR_ADD_ITEM,
    ERROR_FETCH_CART,
    ERROR_INVALID_REQUEST,
    ERROR_PRODUCT_REQUIRED,
    ERROR_QUANTITY_INVALID,
    ERROR_QUANTITY_POSITIVE,
    ERROR_REMOVE_ITEM,
    ERROR_UPDATE_ITEM,
    TransportError,
    UpstreamError,
    ValidationError,
    upstream_error_status,
)
from storefront.logging import get_logger, sanitize_cookie_for_logging, sanitize_id_for_logging
from .deps import get_engine_client
from .models import AddToCartRequest, ErrorEnvelope, UpdateCartLineRequest

logger = get_logger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorEnvelope},
    404: {"model": ErrorEnvelope},
    422: {"model": ErrorEnvelope},
    500: {"model": ErrorEnvelope},
}

router = APIRouter(tags=["cart"], responses=ERROR_RESPONSES)


def _session_cookie(request: Request) -> str | None:
    """Inbound Cookie header as sent by the browser, or None for a new session."""
    values = request.headers.getlist("cookie")
    return "; ".join(values) if values else None


def _replay_set_cookies(response: JSONResponse, set_cookies: Iterable[str]) -> None:
    # append, never set: each cookie must stay its own header
    for value in set_cookies:
        response.headers.append("set-cookie", value)


def error_response(message: str, status_code: int, set_cookies: Iterable[str] = ()) -> JSONResponse:
    """Build the error envelope, replaying any Set-Cookie the engine sent with the failure."""
    response = JSONResponse(status_code=status_code, content={"error": {"message": message}})
    response.headers["Cache-Control"] = "no-store"
    _replay_set_cookies(response, set_cookies)
    return response


def _cart_response(result: CartResult) -> JSONResponse:
    response = JSONResponse(status_code=200, content=result.cart.to_dict())
    response.headers["Cache-Control"] = "no-store"
    _replay_set_cookies(response, result.set_cookies)
    return response


async def _proxy(call: Callable[[], Awaitable[CartResult]], failure: str) -> JSONResponse:
    """Run one engine call and turn every outcome into a JSON response."""
    try:
        result = await call()
    except ValidationError as e:
        return error_response(e.message, 400)
    except UpstreamError as e:
        status_code, message = upstream_error_status(e.status_code)
        logger.warning("Engine answered %s (%s): %s", e.status_code, failure, e.detail)
        return error_response(message or failure, status_code, e.set_cookies)
    except TransportError as e:
        logger.error("%s: %s", failure, e.message)
        return error_response(failure, 500)
    except Exception as e:
        logger.error(f"{failure}: {e}", exc_info=True)
        return error_response(failure, 500)
    return _cart_response(result)


# ==================== ROUTES ====================

@router.get("/cart")
async def get_cart(request: Request, engine: EngineClient = Depends(get_engine_client)):
    """Fetch the cart of the session identified by the inbound cookie."""
    cookie = _session_cookie(request)
    logger.debug("GET /cart (cookies: %s)", sanitize_cookie_for_logging(cookie))
    return await _proxy(lambda: engine.fetch_cart(cookie=cookie), ERROR_FETCH_CART)


@router.post("/cart/add")
async def add_to_cart(
    body: AddToCartRequest,
    request: Request,
    engine: EngineClient = Depends(get_engine_client),
):
    """Add a product; re-adding the same product grows its existing line."""
    cookie = _session_cookie(request)

    async def call() -> CartResult:
        product = Product.from_dict(body.product.model_dump(exclude_none=True))
        return await engine.add_item(product, body.quantity, cookie=cookie)

    return await _proxy(call, ERROR_ADD_ITEM)


@router.put("/cart/update/{line_id}")
async def update_cart_line(
    line_id: str,
    body: UpdateCartLineRequest,
    request: Request,
    engine: EngineClient = Depends(get_engine_client),
):
    """Set a line's quantity (0 = remove)."""
    cookie = _session_cookie(request)
    logger.debug("PUT /cart/update/%s quantity=%s", sanitize_id_for_logging(line_id), body.quantity)
    return await _proxy(
        lambda: engine.update_line(line_id, body.quantity, cookie=cookie),
        ERROR_UPDATE_ITEM,
    )


@router.delete("/cart/remove/{line_id}")
async def remove_cart_line(
    line_id: str,
    request: Request,
    engine: EngineClient = Depends(get_engine_client),
):
    """Remove a line. Removing a line that is not in the cart returns the cart unchanged."""
    cookie = _session_cookie(request)
    logger.debug("DELETE /cart/remove/%s", sanitize_id_for_logging(line_id))
    return await _proxy(lambda: engine.remove_line(line_id, cookie=cookie), ERROR_REMOVE_ITEM)


# ==================== VALIDATION ERRORS ====================

def validation_error_message(errors: list[dict]) -> str:
    """Field-specific message for the first request validation error."""
    if not errors:
        return ERROR_INVALID_REQUEST
    error = errors[0]
    error_type = error.get("type", "")
    if error_type == "json_invalid":
        return "Invalid JSON body"

    field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    if not field:
        return "Request body is required"
    if field == "product":
        return ERROR_PRODUCT_REQUIRED
    if field == "quantity":
        if error_type == "greater_than":
            return ERROR_QUANTITY_POSITIVE
        return ERROR_QUANTITY_INVALID
    return f"Invalid {field}: {error.get('msg', ERROR_INVALID_REQUEST)}"


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Turn FastAPI body validation failures into 400 error envelopes."""
    message = validation_error_message(list(exc.errors()))
    logger.info("Rejected %s %s: %s", request.method, request.url.path, message)
    return error_response(message, 400)
