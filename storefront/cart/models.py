"""Cart models in integer minor units, as returned by the authoritative engine."""
import math
from dataclasses import dataclass, field
from typing import Any, List, Optional

from storefront.config import DEFAULT_CURRENCY
from storefront.errors import ERROR_PRODUCT_REQUIRED, TransportError, ValidationError
from storefront.services.money import to_minor_units

# Optional display attributes carried through unchanged
DISPLAY_FIELDS = ("image", "brand", "category", "sku")


def _require_int(data: dict, key: str, minimum: int | None = None) -> int:
    value = data.get(key)
    # bool is an int subclass; a JSON true is not a quantity
    if isinstance(value, bool) or not isinstance(value, int):
        raise TransportError(f"Invalid cart payload: '{key}' must be an integer")
    if minimum is not None and value < minimum:
        raise TransportError(f"Invalid cart payload: '{key}' must be >= {minimum}")
    return value


def _minor_price(price: Any) -> Optional[int]:
    if price is None:
        return None
    if isinstance(price, bool) or not isinstance(price, (int, float)) or not math.isfinite(price) or price < 0:
        raise ValidationError("Product price must be a non-negative number", field="product.price")
    if isinstance(price, int):
        return price
    if price.is_integer():
        return int(price)
    return to_minor_units(price)


@dataclass(frozen=True)
class CartLineItem:
    """Single line of the cart. line_id is opaque and assigned by the engine."""
    line_id: str
    product_id: int
    title: str
    price: int
    quantity: int
    line_total: int
    stock: Optional[int] = None
    image: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    sku: Optional[str] = None

    @property
    def is_consistent(self) -> bool:
        return self.line_total == self.price * self.quantity

    def to_dict(self) -> dict:
        """Convert to the JSON shape shared by the engine and the edge."""
        data: dict[str, Any] = {
            "line_id": self.line_id,
            "product_id": self.product_id,
            "title": self.title,
            "price": self.price,
            "quantity": self.quantity,
            "line_total": self.line_total,
        }
        if self.stock is not None:
            data["stock"] = self.stock
        for name in DISPLAY_FIELDS:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "CartLineItem":
        """Create from a decoded JSON object. Raises TransportError on bad shape."""
        if not isinstance(data, dict):
            raise TransportError("Invalid cart payload: line item must be an object")
        line_id = data.get("line_id")
        if not isinstance(line_id, str) or not line_id:
            raise TransportError("Invalid cart payload: 'line_id' must be a non-empty string")

        stock = data.get("stock")
        if isinstance(stock, bool) or not isinstance(stock, int):
            stock = None

        return cls(
            line_id=line_id,
            product_id=_require_int(data, "product_id"),
            title=str(data.get("title") or ""),
            price=_require_int(data, "price", minimum=0),
            quantity=_require_int(data, "quantity", minimum=1),
            line_total=_require_int(data, "line_total", minimum=0),
            stock=stock,
            **{name: data.get(name) or None for name in DISPLAY_FIELDS},
        )


@dataclass(frozen=True)
class Cart:
    """Whole cart. Never built by the client, always decoded from a response."""
    items: List[CartLineItem] = field(default_factory=list)
    subtotal: int = 0
    currency: str = DEFAULT_CURRENCY

    @property
    def item_count(self) -> int:
        """Total number of units in the cart."""
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def is_consistent(self) -> bool:
        """
        Whether line totals and the subtotal agree with price * quantity.

        Informational only: the engine's numbers are shown even when this is False.
        """
        if not all(item.is_consistent for item in self.items):
            return False
        return self.subtotal == sum(item.line_total for item in self.items)

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "subtotal": self.subtotal,
            "currency": self.currency,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Cart":
        """Create from a decoded JSON body. Raises TransportError on bad shape."""
        if not isinstance(data, dict):
            raise TransportError("Invalid cart payload: expected an object")
        raw_items = data.get("items", [])
        if not isinstance(raw_items, list):
            raise TransportError("Invalid cart payload: 'items' must be a list")
        currency = data.get("currency") or DEFAULT_CURRENCY
        if not isinstance(currency, str):
            raise TransportError("Invalid cart payload: 'currency' must be a string")
        return cls(
            items=[CartLineItem.from_dict(item) for item in raw_items],
            subtotal=_require_int(data, "subtotal", minimum=0),
            currency=currency,
        )


@dataclass(frozen=True)
class Product:
    """
    Catalog product as the storefront knows it.

    Owned by the catalog collaborator; price is in minor units, or None when
    the catalog sent none (the engine decides how to price it).
    """
    id: int
    price: Optional[int] = None
    title: str = "Product"
    stock: Optional[int] = None
    image: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    sku: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Product":
        """
        Build from a catalog/browser payload.

        Only id is required. Price handling:
        - integer (or whole float, 999.0): already minor units
        - fractional (9.99): catalog major units, converted with to_minor_units
        - missing: left to the engine

        Raises ValidationError when id is missing or not an integer, or when
        price is present but not a non-negative number.
        Unknown keys (description, rating, ...) are ignored.
        """
        if not isinstance(data, dict) or data.get("id") is None:
            raise ValidationError(ERROR_PRODUCT_REQUIRED, field="product")
        product_id = data["id"]
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError("Product id must be an integer", field="product.id")
        stock = data.get("stock")
        return cls(
            id=product_id,
            price=_minor_price(data.get("price")),
            title=str(data.get("title") or "Product"),
            stock=stock if isinstance(stock, int) and not isinstance(stock, bool) else None,
            # Catalog payloads call the image "thumbnail"
            image=data.get("image") or data.get("thumbnail") or None,
            brand=data.get("brand") or None,
            category=data.get("category") or None,
            sku=data.get("sku") or None,
        )

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"id": self.id, "title": self.title}
        if self.price is not None:
            data["price"] = self.price
        if self.stock is not None:
            data["stock"] = self.stock
        for name in DISPLAY_FIELDS:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data
