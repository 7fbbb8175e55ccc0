"""Liveness, readiness and build info for the storefront process.

``/healthz`` checks the wholesale backend, Stripe and the realtime listener.
A failing dependency reports ``degraded`` unless ``STRICT_HEALTH`` is on, in
which case it reports ``fail`` and the endpoint answers 503.
"""

from __future__ import annotations

import socket
import time
from datetime import datetime, timezone
from typing import Any, Dict

import stripe
from flask import Blueprint, current_app, jsonify

from wholesale.config.config import _bool, _env
from wholesale.extensions import get_api
from wholesale.services.api_client import WholesaleApiError

bp = Blueprint("health", __name__)

BOOTED_AT = time.time()
HOST = socket.gethostname()

STRICT = _bool("STRICT_HEALTH", False)
CHECK_STRIPE_ACCOUNT = _bool("HEALTH_DEEP_CHECKS", False)

RELEASE = _env("BUILD_VERSION") or _env("RELEASE") or _env("VERSION") or "dev"
COMMIT = (_env("GIT_SHA") or "")[:12]

# worst state wins
_SEVERITY = {"ok": 0, "degraded": 1, "fail": 2}


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(timespec="seconds")


def _unhealthy(**details: Any) -> Dict[str, Any]:
    return {"status": "fail" if STRICT else "degraded", "ok": False, **details}


def _rollup(parts: Dict[str, Dict[str, Any]]) -> str:
    return max((p.get("status", "ok") for p in parts.values()), key=lambda s: _SEVERITY.get(s, 0), default="ok")


def _check_backend() -> Dict[str, Any]:
    url = current_app.config.get("WHOLESALE_API_URL")
    t0 = time.perf_counter()
    try:
        info = get_api().health_check()
    except WholesaleApiError as e:
        return _unhealthy(url=url, error=e.message)
    return {"status": "ok", "ok": True, "url": url, "latency_ms": int((time.perf_counter() - t0) * 1000), "backend": info}


def _check_stripe() -> Dict[str, Any]:
    cfg = current_app.config
    if cfg.get("WHOLESALE_DEMO_PAYMENTS"):
        return {"status": "ok", "ok": True, "mode": "demo"}

    secret = cfg.get("STRIPE_SECRET_KEY") or ""
    if not secret:
        return {"status": "degraded", "ok": False, "reason": "no-secret-key"}

    result: Dict[str, Any] = {"status": "ok", "ok": True, "mode": "live" if secret.startswith("sk_live_") else "test"}
    if not CHECK_STRIPE_ACCOUNT:
        return result

    try:
        stripe.api_key = secret
        account = stripe.Account.retrieve()
    except stripe.StripeError as e:
        return _unhealthy(error=str(e))
    result["account"] = {"id": getattr(account, "id", None), "charges_enabled": getattr(account, "charges_enabled", None)}
    return result


def _check_realtime() -> Dict[str, Any]:
    if not current_app.config.get("WHOLESALE_REALTIME_ENABLED"):
        return {"status": "ok", "ok": True, "enabled": False}

    listener = current_app.extensions.get("realtime_state")
    connected = bool(listener and listener.connected)
    return {
        "status": "ok" if connected else "degraded",
        "ok": connected,
        "enabled": True,
        "tracked_items": len(current_app.extensions["stock_board"].snapshot()),
    }


@bp.get("/healthz")
def healthz():
    parts = {"backend": _check_backend(), "stripe": _check_stripe(), "realtime": _check_realtime()}
    now = time.time()
    body = {
        "status": _rollup(parts),
        "version": RELEASE,
        "git": COMMIT,
        "hostname": HOST,
        "started_at": _iso(BOOTED_AT),
        "uptime_s": int(now - BOOTED_AT),
        "now": _iso(now),
        "parts": parts,
        "flags": {"strict": STRICT, "deep_checks": CHECK_STRIPE_ACCOUNT},
    }
    return jsonify(body), 503 if body["status"] == "fail" else 200


@bp.get("/livez")
def livez():
    now = time.time()
    return jsonify({"status": "ok", "now": _iso(now), "uptime_s": int(now - BOOTED_AT)})


@bp.get("/version")
def version():
    cfg = current_app.config
    return jsonify({"version": RELEASE, "git": COMMIT, "env": cfg.get("ENV"), "restaurant": cfg.get("RESTAURANT_NAME")})
