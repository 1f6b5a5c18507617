"""
Storefront Cart Edge - Main FastAPI Application

Single entry point for the cart BFF routes the browser talks to.
The authoritative cart engine lives elsewhere (CART_ENGINE_URL).
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from storefront.config import get_cors_origins
from storefront.logging import get_logger
from storefront.routers import cart_router
from storefront.routers.cart import request_validation_handler
from storefront.routers.deps import shutdown_services

logger = get_logger(__name__)


# ==================== FASTAPI APP ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    yield
    # Shutdown
    await shutdown_services()


app = FastAPI(
    title="Storefront Cart Edge",
    description="Session cookie proxy in front of the authoritative cart engine",
    version="1.0.0",
    lifespan=lifespan,
)

# Browser sends the session cookie cross-origin in development
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RequestValidationError, request_validation_handler)

app.include_router(cart_router)


# ==================== HEALTH CHECK ====================

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "service": "storefront-cart"}
