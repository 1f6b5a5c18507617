"""Edge and client configuration read from environment variables."""
import os
from dataclasses import dataclass

from storefront.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ENGINE_URL = "http://localhost:8080/api"
DEFAULT_STOREFRONT_URL = "http://localhost:3000"
DEFAULT_CURRENCY = "USD"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Non-positive %s=%r, using default %s", name, raw, default)
        return default
    return value


@dataclass(frozen=True)
class EngineSettings:
    """Connection settings for the authoritative cart engine."""
    base_url: str
    timeout: float
    connect_timeout: float


def get_engine_settings() -> EngineSettings:
    """Read engine settings (CART_ENGINE_URL, CART_ENGINE_TIMEOUT, CART_ENGINE_CONNECT_TIMEOUT)."""
    return EngineSettings(
        base_url=os.environ.get("CART_ENGINE_URL", DEFAULT_ENGINE_URL).rstrip("/"),
        timeout=_env_float("CART_ENGINE_TIMEOUT", 10.0),
        connect_timeout=_env_float("CART_ENGINE_CONNECT_TIMEOUT", 5.0),
    )


def get_storefront_url() -> str:
    """Base URL of the edge surface, used by the client store."""
    return os.environ.get("STOREFRONT_URL", DEFAULT_STOREFRONT_URL).rstrip("/")


def get_default_currency() -> str:
    return os.environ.get("DEFAULT_CURRENCY", DEFAULT_CURRENCY).upper()


def get_cors_origins() -> list[str]:
    """CORS_ALLOW_ORIGINS as a list (comma separated, default "*")."""
    raw = os.environ.get("CORS_ALLOW_ORIGINS", "*")
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or ["*"]
