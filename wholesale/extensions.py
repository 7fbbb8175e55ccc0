import atexit
import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

import stripe
from flask import current_app
from flask_socketio import SocketIO
from flask_wtf.csrf import CSRFProtect

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Core singletons
# ─────────────────────────────────────────────────────────────
socketio = SocketIO(async_mode=os.getenv("SOCKET_ASYNC_MODE", "threading"))
csrf = CSRFProtect()


# ─────────────────────────────────────────────────────────────
# Background tasks + clean shutdown
# ─────────────────────────────────────────────────────────────
_BG_MAX_WORKERS = int(os.getenv("BG_MAX_WORKERS", "4"))
_EXECUTOR = ThreadPoolExecutor(max_workers=_BG_MAX_WORKERS)


def run_bg(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
    return _EXECUTOR.submit(func, *args, **kwargs)


@atexit.register
def _shutdown_executor() -> None:
    _EXECUTOR.shutdown(wait=False, cancel_futures=True)


# ─────────────────────────────────────────────────────────────
# Safe socket emit (browser-facing rebroadcast)
# ─────────────────────────────────────────────────────────────
def emit_socket(event: str, data: Optional[Dict[str, Any]] = None, room: Optional[str] = None) -> bool:
    try:
        socketio.emit(event, data or {}, to=room)
        return True
    except Exception as e:
        log.warning("socket emit failed: %s", e)
        return False


# ─────────────────────────────────────────────────────────────
# Stripe initialization
# ─────────────────────────────────────────────────────────────
def _guess_stripe_mode(api_key: Optional[str]) -> str:
    if not api_key:
        return "disabled"
    if api_key.startswith(("sk_live_", "rk_live_")):
        return "live"
    if api_key.startswith(("sk_test_", "rk_test_")):
        return "test"
    return "unknown"


def init_stripe(app: Any) -> None:
    api_key = app.config.get("STRIPE_SECRET_KEY") or ""

    if not api_key:
        if app.config.get("WHOLESALE_DEMO_PAYMENTS"):
            app.logger.info("Stripe disabled: demo payments enabled")
        else:
            app.logger.warning("Stripe NOT initialized: missing STRIPE_SECRET_KEY")
        app.extensions["stripe"] = None
        return

    stripe.api_key = api_key
    stripe.max_network_retries = int(app.config.get("STRIPE_MAX_NETWORK_RETRIES") or 0)
    app.extensions["stripe"] = stripe
    app.logger.info("Stripe initialized (%s mode)", _guess_stripe_mode(api_key))


# ─────────────────────────────────────────────────────────────
# Backend client + realtime state
# ─────────────────────────────────────────────────────────────
def init_backend(app: Any) -> None:
    from wholesale.services.api_client import WholesaleApi
    from wholesale.services.realtime import StockBoard

    app.extensions["wholesale_api"] = WholesaleApi.from_config(app.config)
    app.extensions["stock_board"] = StockBoard()


def get_api():
    """Backend client bound to the current app."""
    return current_app.extensions["wholesale_api"]


def get_stock_board():
    return current_app.extensions["stock_board"]


__all__ = [
    "socketio",
    "csrf",
    "run_bg",
    "emit_socket",
    "init_stripe",
    "init_backend",
    "get_api",
    "get_stock_board",
]
