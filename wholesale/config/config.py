# wholesale/config/config.py
# Canonical storefront configuration (env-first, production-safe)

from __future__ import annotations

import os
from datetime import timedelta
from typing import Callable, Optional, TypeVar


# ----------------------------
# Env helpers
# ----------------------------
_TRUTHY = {"1", "true", "yes", "on", "y"}
_FALSY = {"0", "false", "no", "off", "n"}

N = TypeVar("N", int, float)


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Stripped env value; blank counts as unset."""
    raw = (os.getenv(name) or "").strip()
    return raw or default


def _bool(name: str, default: bool = False) -> bool:
    raw = (_env(name) or "").lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return default


def _number(name: str, default: N, cast: Callable[[str], N]) -> N:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


def _int(name: str, default: int) -> int:
    return _number(name, default, int)


def _float(name: str, default: float) -> float:
    return _number(name, default, float)


def _clean_base_url(v: Optional[str]) -> str:
    return (v or "").strip().rstrip("/")


# ----------------------------
# Config classes
# ----------------------------
class BaseConfig:
    """
    Env-first config:
    - every backend / payment / cart setting can be overridden via environment variables
    - safe defaults for local dev against a backend on localhost
    """

    ENV = (_env("APP_ENV") or _env("ENV") or _env("FLASK_ENV") or "base").strip().lower()

    DEBUG = _bool("FLASK_DEBUG", False)
    TESTING = _bool("TESTING", False)

    SECRET_KEY = _env("SECRET_KEY", "dev-change-me")
    PUBLIC_BASE_URL = _clean_base_url(_env("PUBLIC_BASE_URL", ""))
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")

    # Cookies (the cart rides in the session cookie)
    SESSION_COOKIE_NAME = _env("SESSION_COOKIE_NAME", "wholesale")
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = _env("SESSION_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SECURE = True
    PERMANENT_SESSION_LIFETIME = timedelta(days=_int("SESSION_DAYS", 31))

    LOG_LEVEL = _env("LOG_LEVEL", "INFO")
    WERKZEUG_LOG_LEVEL = _env("WERKZEUG_LOG_LEVEL", "WARNING")

    # Backend (REST + realtime)
    WHOLESALE_API_URL = _clean_base_url(_env("WHOLESALE_API_URL", "http://localhost:3000"))
    WHOLESALE_API_TIMEOUT = _float("WHOLESALE_API_TIMEOUT", 15.0)
    WHOLESALE_API_TOKEN = _env("WHOLESALE_API_TOKEN", "")
    WHOLESALE_SOCKET_URL = _clean_base_url(_env("WHOLESALE_SOCKET_URL", ""))
    WHOLESALE_REALTIME_ENABLED = _bool("WHOLESALE_REALTIME_ENABLED", False)
    RESTAURANT_ID = _env("RESTAURANT_ID", "1")
    RESTAURANT_NAME = _env("RESTAURANT_NAME", "Hafaloha")
    RESTAURANT_ADDRESS = _env("RESTAURANT_ADDRESS", "")

    # Payments
    STRIPE_SECRET_KEY = _env("STRIPE_SECRET_KEY", "")
    STRIPE_PUBLISHABLE_KEY = _env("STRIPE_PUBLISHABLE_KEY", "")
    STRIPE_MAX_NETWORK_RETRIES = _int("STRIPE_MAX_NETWORK_RETRIES", 0)
    WHOLESALE_DEMO_PAYMENTS = _bool("WHOLESALE_DEMO_PAYMENTS", False)
    CURRENCY = (_env("CURRENCY", "usd") or "usd").lower()

    # Cart
    CART_STORAGE_KEY = _env("CART_STORAGE_KEY", "wholesale-cart-storage")
    CART_FILE_PATH = _env("CART_FILE_PATH", os.path.expanduser("~/.wholesale-cart.json"))
    LOW_STOCK_THRESHOLD = _int("LOW_STOCK_THRESHOLD", 5)
    DEFAULT_PHONE_PREFIX = _env("DEFAULT_PHONE_PREFIX", "+1671")
    CATALOG_PER_PAGE = _int("CATALOG_PER_PAGE", 12)

    # Forms (JSON API posts carry no CSRF token)
    WTF_CSRF_ENABLED = _bool("WTF_CSRF_ENABLED", False)

    @classmethod
    def init_app(cls, app) -> None:
        """Hook for factory boot hardening; called after config.from_object()."""
        if not app.config.get("WHOLESALE_SOCKET_URL"):
            app.config["WHOLESALE_SOCKET_URL"] = app.config.get("WHOLESALE_API_URL", "")


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True

    SESSION_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "http")
    WHOLESALE_DEMO_PAYMENTS = _bool("WHOLESALE_DEMO_PAYMENTS", True)


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    DEBUG = False

    SECRET_KEY = "testing-secret"
    SESSION_COOKIE_SECURE = False
    WHOLESALE_API_URL = "http://backend.test"
    WHOLESALE_SOCKET_URL = "http://backend.test"
    WHOLESALE_REALTIME_ENABLED = False
    WHOLESALE_DEMO_PAYMENTS = True
    STRIPE_SECRET_KEY = ""
    STRIPE_PUBLISHABLE_KEY = "pk_test_wholesale"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "WARNING"


class ProductionConfig(BaseConfig):
    ENV = "production"
    DEBUG = False

    SESSION_COOKIE_SECURE = True
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")

    @classmethod
    def init_app(cls, app) -> None:
        super().init_app(app)

        # ---- Production guardrails (fail fast) ----
        sk = app.config.get("SECRET_KEY")
        if not sk or sk == "dev-change-me":
            raise RuntimeError("SECRET_KEY must be set to a strong random value in production.")

        base = (app.config.get("PUBLIC_BASE_URL") or "").strip()
        if base and base.startswith("http://"):
            raise RuntimeError("PUBLIC_BASE_URL must be https:// in production.")

        if app.config.get("WHOLESALE_DEMO_PAYMENTS"):
            raise RuntimeError("WHOLESALE_DEMO_PAYMENTS must be off in production.")

        if _bool("FLASK_DEBUG", False):
            raise RuntimeError("FLASK_DEBUG must be 0 in production.")
