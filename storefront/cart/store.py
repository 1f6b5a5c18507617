"""
Client-side cart store.

Holds the last known-good cart and coordinates mutations against the edge:

- every completed request replaces the whole cart with the server response
  (local arithmetic only decides what quantity to ask for)
- a response is applied only if no request dispatched after it has already
  been applied; an older snapshot never overwrites a newer one
- at most one in-flight mutation per line_id; a command for a busy line is
  rejected, not queued
- failures never raise into callers; they land in the ``error`` field and the
  previous cart stays visible

The store is an explicit state container with subscribe/notify semantics and
an owned lifecycle: create it at session start, close() it on teardown.
Responses that arrive after close() are dropped.
"""
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, List, Optional, Protocol, Tuple

from storefront.config import get_default_currency
from storefront.errors import (
    ERROR_ADD_ITEM,
    ERROR_FETCH_CART,
    ERROR_REMOVE_ITEM,
    ERROR_UPDATE_ITEM,
    CartError,
    UpstreamError,
    ValidationError,
)
from storefront.logging import get_logger, sanitize_id_for_logging
from storefront.services.money import format_price
from .lines import find_line, requested_quantity
from .models import Cart, CartLineItem
from .transport import CartResult, ProductInput

logger = get_logger(__name__)

# Scope an error belongs to: the whole cart, or one line
CART_SCOPE: Tuple[str, ...] = ("cart",)


def _line_scope(line_id: str) -> Tuple[str, ...]:
    return ("line", line_id)


class CartBackend(Protocol):
    """What the store needs from a transport (StorefrontClient in production)."""

    @property
    def has_session(self) -> bool: ...

    async def fetch_cart(self) -> CartResult: ...

    async def add_item(self, product: ProductInput, quantity: int = 1) -> CartResult: ...

    async def update_line(self, line_id: str, quantity: int) -> CartResult: ...

    async def remove_line(self, line_id: str) -> CartResult: ...


@dataclass(frozen=True)
class CartSnapshot:
    """Immutable view of the store state handed to listeners."""
    items: tuple[CartLineItem, ...] = ()
    subtotal: int = 0
    currency: str = field(default_factory=get_default_currency)
    is_loading: bool = False
    error: Optional[str] = None
    busy_lines: frozenset[str] = frozenset()
    # False until a cart has been received for the current session
    is_known: bool = False

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def formatted_subtotal(self) -> str:
        return format_price(self.subtotal, self.currency)

    def is_item_loading(self, line_id: str) -> bool:
        return line_id in self.busy_lines

    def find_line(self, line_id: str) -> Optional[CartLineItem]:
        return find_line(self.items, line_id)


Listener = Callable[[CartSnapshot], None]


def _failure_message(error: Exception, fallback: str) -> str:
    """Message to show the user for a failed command."""
    if isinstance(error, ValidationError):
        return error.message
    if isinstance(error, UpstreamError) and error.is_client_error:
        return error.message
    return fallback


class CartStore:
    """
    Cart mutation coordinator.

    Usage:
        async with CartStore(StorefrontClient()) as store:
            store.subscribe(render)
            await store.fetch()
            await store.increment_line(line_id)
    """

    def __init__(self, backend: CartBackend) -> None:
        self._backend = backend
        self._state = CartSnapshot()
        self._listeners: List[Listener] = []
        self._pending_cart_ops = 0
        self._closed = False
        # Dispatch order of requests, and the newest one whose cart is shown
        self._dispatched_seq = 0
        self._applied_seq = 0
        self._error_scope: Optional[Tuple[str, ...]] = None

    # ==================== STATE ====================

    @property
    def state(self) -> CartSnapshot:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._closed

    def is_item_loading(self, line_id: str) -> bool:
        return self._state.is_item_loading(line_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes) -> None:
        if self._closed:
            return
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Cart listener failed")

    def _dispatch(self) -> int:
        self._dispatched_seq += 1
        return self._dispatched_seq

    def _clear_error(self, scope: Tuple[str, ...]) -> dict:
        """State change that drops the error, but only if this scope raised it."""
        if self._error_scope != scope:
            return {}
        self._error_scope = None
        return {"error": None}

    def _fail(self, scope: Tuple[str, ...], message: str) -> dict:
        self._error_scope = scope
        return {"error": message}

    def _accept(self, seq: int, cart: Cart, scope: Tuple[str, ...], **changes) -> bool:
        """
        Replace the whole cached cart with a server response, unless a request
        dispatched later has already been applied. Other changes (busy flags,
        loading) are applied either way. Returns whether the cart was applied.
        """
        if seq <= self._applied_seq:
            logger.debug("Dropping stale cart response #%s (showing #%s)", seq, self._applied_seq)
            self._set(**changes, **self._clear_error(scope))
            return False
        self._applied_seq = seq
        self._set(
            items=tuple(cart.items),
            subtotal=cart.subtotal,
            currency=cart.currency,
            is_known=True,
            **changes,
            **self._clear_error(scope),
        )
        return True

    # ==================== LIFECYCLE ====================

    def reset(self) -> None:
        """
        Discard the cached cart (logout or session loss).

        Requests already in flight keep their busy flags and loading count
        until they complete, but their responses are never applied.
        """
        self._applied_seq = self._dispatched_seq
        self._error_scope = None
        self._set(
            items=(),
            subtotal=0,
            currency=get_default_currency(),
            error=None,
            is_known=False,
        )

    def close(self) -> None:
        """Tear the store down. Later responses are ignored and listeners dropped."""
        self._closed = True
        self._listeners.clear()

    async def __aenter__(self) -> "CartStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ==================== CART-LEVEL COMMANDS ====================

    async def _run_cart_op(
        self,
        call: Callable[[], Awaitable[CartResult]],
        failure: str,
    ) -> Tuple[Optional[Cart], bool]:
        """Returns (cart on success, whether that cart was applied)."""
        if self._closed:
            return None, False
        seq = self._dispatch()
        self._pending_cart_ops += 1
        self._set(is_loading=True, **self._clear_error(CART_SCOPE))
        try:
            result = await call()
        except Exception as e:
            if not isinstance(e, CartError):
                logger.exception("Unexpected cart failure")
            self._pending_cart_ops = max(0, self._pending_cart_ops - 1)
            self._set(is_loading=self._pending_cart_ops > 0, **self._fail(CART_SCOPE, _failure_message(e, failure)))
            return None, False
        self._pending_cart_ops = max(0, self._pending_cart_ops - 1)
        if self._closed:
            return None, False
        applied = self._accept(seq, result.cart, CART_SCOPE, is_loading=self._pending_cart_ops > 0)
        return result.cart, applied

    async def fetch(self) -> bool:
        """Reload the whole cart. On failure the previous cart stays in place."""
        cart, applied = await self._run_cart_op(self._backend.fetch_cart, ERROR_FETCH_CART)
        if cart is None:
            return False
        if applied and cart.is_empty and not self._backend.has_session:
            logger.info("No session cookie and empty cart, treating as session loss")
            self.reset()
        return True

    async def add_item(self, product: ProductInput, quantity: int = 1) -> bool:
        """
        Add a product. Cart-level: the resulting line_id is unknown until the
        response arrives. Adds are never de-duplicated here; merging repeated
        products into one line is the engine's job.
        """
        cart, _ = await self._run_cart_op(
            lambda: self._backend.add_item(product, quantity),
            ERROR_ADD_ITEM,
        )
        return cart is not None

    # ==================== LINE-SCOPED COMMANDS ====================

    async def _run_line_op(
        self,
        line_id: str,
        call: Callable[[], Awaitable[CartResult]],
        failure: str,
    ) -> bool:
        if self._closed:
            return False
        if line_id in self._state.busy_lines:
            logger.debug("Line %s busy, command rejected", sanitize_id_for_logging(line_id))
            return False

        scope = _line_scope(line_id)
        seq = self._dispatch()
        self._set(busy_lines=self._state.busy_lines | {line_id}, **self._clear_error(scope))
        try:
            result = await call()
        except Exception as e:
            if not isinstance(e, CartError):
                logger.exception("Unexpected cart failure on line %s", sanitize_id_for_logging(line_id))
            self._set(
                busy_lines=self._state.busy_lines - {line_id},
                **self._fail(scope, _failure_message(e, failure)),
            )
            return False

        if self._closed:
            return False
        self._accept(seq, result.cart, scope, busy_lines=self._state.busy_lines - {line_id})
        return True

    async def update_line(self, line_id: str, quantity: int) -> bool:
        """Ask for an absolute quantity on a line (<= 0 removes it)."""
        return await self._run_line_op(
            line_id,
            lambda: self._backend.update_line(line_id, quantity),
            ERROR_UPDATE_ITEM,
        )

    async def _change_line(self, line_id: str, delta: int) -> bool:
        if line_id in self._state.busy_lines:
            logger.debug("Line %s busy, command rejected", sanitize_id_for_logging(line_id))
            return False
        line = self._state.find_line(line_id)
        if line is None:
            return False
        quantity = requested_quantity(line, delta)
        if quantity < 1:
            # Decrement stops at 1; removal is an explicit command
            return False
        return await self.update_line(line_id, quantity)

    async def increment_line(self, line_id: str) -> bool:
        return await self._change_line(line_id, 1)

    async def decrement_line(self, line_id: str) -> bool:
        return await self._change_line(line_id, -1)

    async def remove_line(self, line_id: str) -> bool:
        return await self._run_line_op(
            line_id,
            lambda: self._backend.remove_line(line_id),
            ERROR_REMOVE_ITEM,
        )
