"""
Storefront Cart Module

This package contains the cart synchronization layer:
- cart: cart models, line identity policy, transport clients, client store
- routers: edge (BFF) routes that proxy the authoritative cart engine
- services: money helpers
- config / errors / logging: shared infrastructure

Note: Imports are lazy to keep module loading cheap in serverless
environments. Import from the subpackages directly.
"""

__all__ = [
    "cart",
    "config",
    "errors",
    "logging",
    "routers",
    "services",
]
