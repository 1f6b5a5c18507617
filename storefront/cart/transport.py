"""
Cart transport clients.

Both clients return the full response header set next to the decoded cart,
because the edge has to replay every Set-Cookie the engine sends. Input is
validated before any request is built; invalid input never reaches the network.
"""
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, Mapping, NamedTuple, Optional, Union
from urllib.parse import quote

import httpx

from storefront.config import get_engine_settings, get_storefront_url
from storefront.errors import (
    ERROR_ADD_ITEM,
    ERROR_FETCH_CART,
    ERROR_INTERNAL,
    ERROR_QUANTITY_POSITIVE,
    ERROR_REMOVE_ITEM,
    ERROR_UPDATE_ITEM,
    TransportError,
    UpstreamError,
    ValidationError,
)
from storefront.logging import (
    get_logger,
    sanitize_cookie_for_logging,
    sanitize_id_for_logging,
    sanitize_string_for_logging,
)
from .lines import is_removal, validate_line_id, validate_quantity
from .models import Cart, Product

logger = get_logger(__name__)

ProductInput = Union[Product, Mapping[str, Any]]


class CartResult(NamedTuple):
    """Decoded cart plus the raw response headers, in received order."""
    cart: Cart
    headers: httpx.Headers

    @property
    def set_cookies(self) -> tuple[str, ...]:
        """Every Set-Cookie header, one entry per header, never joined."""
        return tuple(self.headers.get_list("set-cookie"))


def _prepend_set_cookies(set_cookies: tuple[str, ...], headers: httpx.Headers) -> httpx.Headers:
    """New header set with extra Set-Cookie entries placed before the existing ones."""
    items = [("set-cookie", value) for value in set_cookies]
    return httpx.Headers(items + list(headers.multi_items()))


def cookie_after(cookie: str | None, set_cookies: tuple[str, ...]) -> str | None:
    """
    Cookie header a browser would send after storing set_cookies.

    Only name=value pairs are overlaid; a cookie expired with Max-Age=0 is dropped.
    Used for follow-up reads inside one edge call, never for what is replayed.
    """
    if not set_cookies:
        return cookie
    pairs: dict[str, str] = {}
    for part in (cookie or "").split(";"):
        name, sep, value = part.strip().partition("=")
        if name and sep:
            pairs[name] = value
    for header in set_cookies:
        first, _, attributes = header.partition(";")
        name, sep, value = first.strip().partition("=")
        if not name or not sep:
            continue
        if any(attr.strip().lower() == "max-age=0" for attr in attributes.split(";")):
            pairs.pop(name, None)
        else:
            pairs[name] = value
    return "; ".join(f"{name}={value}" for name, value in pairs.items()) or None


def _coerce_product(product: Optional[ProductInput]) -> Product:
    if isinstance(product, Product):
        return product
    return Product.from_dict(dict(product) if isinstance(product, Mapping) else product)


class _RejectAllCookiePolicy(DefaultCookiePolicy):
    """Cookie policy that neither stores nor sends anything."""

    def set_ok(self, cookie, request) -> bool:
        return False

    def return_ok(self, cookie, request) -> bool:
        return False


class CartTransport:
    """
    Shared request/decode logic for the four cart operations.

    Subclasses decide the add-item body shape and how error bodies are read.
    The underlying httpx client is created lazily and must be closed with
    aclose() (or by using the transport as an async context manager).
    """

    def __init__(
        self,
        base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._connect_timeout = connect_timeout
        self._http_client: httpx.AsyncClient | None = None

    # ==================== HTTP CLIENT ====================

    def _cookie_jar(self) -> CookieJar | None:
        return None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                transport=self._transport,
                cookies=self._cookie_jar(),
                timeout=httpx.Timeout(
                    self._timeout,
                    connect=self._connect_timeout,
                    read=self._timeout,
                    write=self._timeout,
                ),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            )
        return self._http_client

    async def aclose(self) -> None:
        """Close http client if created."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ==================== OPERATIONS ====================

    async def fetch_cart(self, cookie: str | None = None) -> CartResult:
        """GET /cart."""
        return await self._send("GET", "/cart", cookie=cookie, failure=ERROR_FETCH_CART)

    async def add_item(
        self,
        product: Optional[ProductInput],
        quantity: int = 1,
        cookie: str | None = None,
    ) -> CartResult:
        """POST /cart/add. Re-adding a product grows its existing line (engine side)."""
        product = _coerce_product(product)
        validate_quantity(quantity)
        if quantity <= 0:
            raise ValidationError(ERROR_QUANTITY_POSITIVE, field="quantity")
        return await self._send(
            "POST",
            "/cart/add",
            cookie=cookie,
            failure=ERROR_ADD_ITEM,
            body=self._add_item_body(product, quantity),
        )

    async def update_line(self, line_id: str, quantity: int, cookie: str | None = None) -> CartResult:
        """PUT /cart/update/{line_id}. A quantity <= 0 is sent as a removal."""
        validate_line_id(line_id)
        validate_quantity(quantity)
        if is_removal(quantity):
            return await self.remove_line(line_id, cookie=cookie)
        return await self._send(
            "PUT",
            f"/cart/update/{quote(line_id, safe='')}",
            cookie=cookie,
            failure=ERROR_UPDATE_ITEM,
            body={"quantity": quantity},
        )

    async def remove_line(self, line_id: str, cookie: str | None = None) -> CartResult:
        """
        DELETE /cart/remove/{line_id}.

        Removing a line that is already gone is not an error: a 404 is answered
        with the current cart, and the 404's own Set-Cookie headers come first.
        """
        validate_line_id(line_id)
        try:
            return await self._send(
                "DELETE",
                f"/cart/remove/{quote(line_id, safe='')}",
                cookie=cookie,
                failure=ERROR_REMOVE_ITEM,
            )
        except UpstreamError as e:
            if e.status_code != 404:
                raise
            logger.info("Line %s already absent, returning current cart", sanitize_id_for_logging(line_id))
            # The 404 may have rotated the session; read with the cookie a browser would now hold
            current = await self.fetch_cart(cookie=self._cookie_for_retry(cookie, e.set_cookies))
            if not e.set_cookies:
                return current
            return CartResult(current.cart, _prepend_set_cookies(e.set_cookies, current.headers))

    # ==================== INTERNALS ====================

    def _add_item_body(self, product: Product, quantity: int) -> dict:
        raise NotImplementedError

    def _cookie_for_retry(self, cookie: str | None, set_cookies: tuple[str, ...]) -> str | None:
        return cookie_after(cookie, set_cookies)

    def _error_message(self, response: httpx.Response) -> str | None:
        """User-safe message from an error response, if the peer provides one."""
        return None

    def _build_headers(self, cookie: str | None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if cookie:
            # Forwarded verbatim, attributes and ordering untouched
            headers["Cookie"] = cookie
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        cookie: str | None,
        failure: str,
        body: dict | None = None,
    ) -> CartResult:
        client = await self._get_http_client()
        url = f"{self.base_url}{path}"
        logger.debug("%s %s (cookies: %s)", method, path, sanitize_cookie_for_logging(cookie))

        try:
            response = await client.request(method, url, headers=self._build_headers(cookie), json=body)
        except httpx.HTTPError as e:
            logger.error("Cart request %s %s failed: %s", method, path, type(e).__name__)
            raise TransportError(failure, cause=e) from e

        set_cookies = tuple(response.headers.get_list("set-cookie"))

        if not response.is_success:
            detail = sanitize_string_for_logging(response.text, max_length=200)
            logger.warning("Cart request %s %s returned %s: %s", method, path, response.status_code, detail)
            raise UpstreamError(
                response.status_code,
                message=self._error_message(response) or ERROR_INTERNAL,
                detail=detail,
                set_cookies=set_cookies,
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.error("Cart request %s %s returned non-JSON body", method, path)
            raise TransportError(failure, cause=e) from e

        try:
            cart = Cart.from_dict(payload)
        except TransportError as e:
            logger.error("Cart request %s %s returned malformed cart: %s", method, path, e.message)
            raise TransportError(failure, cause=e) from e

        if not cart.is_consistent:
            logger.warning("Cart totals from %s %s do not add up; showing them as received", method, path)

        return CartResult(cart, response.headers)


class EngineClient(CartTransport):
    """
    Client for the authoritative cart engine, used by the edge routes.

    One instance serves every browser, so it must never keep cookies: the
    session travels only in the explicit Cookie header of each call.
    """

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
        connect_timeout: float | None = None,
    ) -> None:
        settings = get_engine_settings()
        super().__init__(
            base_url or settings.base_url,
            transport=transport,
            timeout=timeout or settings.timeout,
            connect_timeout=connect_timeout or settings.connect_timeout,
        )

    def _cookie_jar(self) -> CookieJar:
        return CookieJar(policy=_RejectAllCookiePolicy())

    def _add_item_body(self, product: Product, quantity: int) -> dict:
        # Engine expects the product flattened next to the quantity
        body: dict[str, Any] = {
            "product_id": product.id,
            "quantity": quantity,
            "title": product.title,
        }
        if product.price is not None:
            body["price"] = product.price
        if product.stock is not None:
            body["stock"] = product.stock
        for name in ("image", "brand", "category", "sku"):
            value = getattr(product, name)
            if value is not None:
                body[name] = value
        return body


class StorefrontClient(CartTransport):
    """
    Browser-side client for the edge surface, used by the client store.

    Keeps a persistent cookie jar like a browser would, so a session cookie
    set by one response is sent on the next request.
    """

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
    ) -> None:
        super().__init__(
            base_url or get_storefront_url(),
            transport=transport,
            timeout=timeout,
            connect_timeout=connect_timeout,
        )

    @property
    def has_session(self) -> bool:
        """Whether any cookie is currently held for the storefront."""
        return self._http_client is not None and len(self._http_client.cookies) > 0

    def _cookie_for_retry(self, cookie: str | None, set_cookies: tuple[str, ...]) -> str | None:
        # The jar already stored whatever the failed call set
        return cookie

    def _add_item_body(self, product: Product, quantity: int) -> dict:
        return {"product": product.to_dict(), "quantity": quantity}

    def _error_message(self, response: httpx.Response) -> str | None:
        try:
            payload = response.json()
        except ValueError:
            return None
        error = payload.get("error") if isinstance(payload, dict) else None
        message = error.get("message") if isinstance(error, dict) else None
        return message if isinstance(message, str) and message else None
