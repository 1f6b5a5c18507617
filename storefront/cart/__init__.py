"""Cart package: models, line identity policy, transport clients and client store."""
from .models import Cart, CartLineItem, Product
from .transport import CartResult, CartTransport, EngineClient, StorefrontClient
from .store import CartSnapshot, CartStore

__all__ = [
    "Cart",
    "CartLineItem",
    "CartResult",
    "CartSnapshot",
    "CartStore",
    "CartTransport",
    "EngineClient",
    "Product",
    "StorefrontClient",
]
