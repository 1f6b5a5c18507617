"""
Script to check that the authoritative cart engine is reachable and
answers the edge the way the proxy expects.
Usage: python scripts/check_cart_engine.py [cookie-header]
"""
import asyncio
import sys

import httpx

from storefront.cart import EngineClient
from storefront.errors import CartError
from storefront.services.money import format_price


async def check_cart_engine(
    cookie: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Fetch the cart once and report what came back."""
    async with EngineClient(transport=transport) as engine:
        print(f"🔍 Checking cart engine at {engine.base_url}...\n")
        try:
            result = await engine.fetch_cart(cookie=cookie)
        except CartError as e:
            print(f"   ❌ Error: {e.message} (status {e.status_code})")
            return False

    cart = result.cart
    print(f"   ✅ Cart lines: {len(cart.items)}")
    print(f"   Units: {cart.item_count}")
    print(f"   Subtotal: {format_price(cart.subtotal, cart.currency)}")
    print(f"   Set-Cookie headers: {len(result.set_cookies)}")
    if not cart.is_consistent:
        print("   ⚠️  Totals do not add up (line_total / subtotal)")
        return False
    return True


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    cookie = args[0] if args else None
    ok = asyncio.run(check_cart_engine(cookie))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
