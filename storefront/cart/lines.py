"""
Cart line identity policy.

The engine derives line_id from product identity, so adding a product that is
already in the cart grows the existing line instead of creating a second one.
The client side of that contract lives here: ids are opaque keys received from
engine responses, never computed locally, and a quantity <= 0 is a removal.
"""
from typing import Iterable, Optional

from storefront.errors import ERROR_LINE_ID_REQUIRED, ERROR_QUANTITY_INVALID, ValidationError
from .models import CartLineItem


def is_removal(quantity: int) -> bool:
    """A requested quantity of zero or less removes the line."""
    return quantity <= 0


def validate_line_id(line_id: object) -> str:
    """Return line_id unchanged, or raise ValidationError if it is not a non-empty string."""
    if not isinstance(line_id, str) or not line_id.strip():
        raise ValidationError(ERROR_LINE_ID_REQUIRED, field="line_id")
    return line_id


def validate_quantity(quantity: object) -> int:
    """Quantities must be real integers (not bool, not float, not numeric strings)."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(ERROR_QUANTITY_INVALID, field="quantity")
    return quantity


def find_line(items: Iterable[CartLineItem], line_id: str) -> Optional[CartLineItem]:
    """Look up a line by its opaque id."""
    return next((item for item in items if item.line_id == line_id), None)


def requested_quantity(line: CartLineItem, delta: int) -> int:
    """
    Quantity to ask the engine for when changing a line by delta.

    Only the request is derived locally; the stored quantity always comes
    back from the engine.
    """
    return line.quantity + delta
