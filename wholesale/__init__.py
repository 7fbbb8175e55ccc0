# wholesale/__init__.py
# Wholesale fundraiser storefront: Flask app factory
#
# Boot order matters: config -> proxy/logging -> extensions -> hooks -> blueprints -> realtime.

from __future__ import annotations

import logging
import time
from importlib import import_module
from typing import Any, Dict, Optional, Tuple, Type, Union
from uuid import uuid4

from dotenv import load_dotenv
from flask import Blueprint, Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException
from werkzeug.http import HTTP_STATUS_CODES
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.utils import import_string

# .env fills gaps only; a real environment always wins
load_dotenv(override=False)

from wholesale.config.config import _bool, _env  # noqa: E402
from wholesale.extensions import csrf, init_backend, init_stripe, run_bg, socketio  # noqa: E402

__version__ = "0.1.0"

ConfigTarget = Union[str, Type[Any]]

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s rid=%(request_id)s | %(message)s"

# (module, url prefix); each module exposes `bp`
BLUEPRINTS: Tuple[Tuple[str, Optional[str]], ...] = (
    ("wholesale.blueprints.health", None),
    ("wholesale.blueprints.storefront", "/api"),
    ("wholesale.blueprints.cart", "/cart"),
    ("wholesale.blueprints.checkout", "/checkout"),
    ("wholesale.blueprints.orders", "/orders"),
)

# Paths that always answer errors as JSON, whatever the Accept header says
JSON_PREFIXES = ("/api/", "/cart", "/checkout", "/orders", "/healthz", "/version")

_ENV_ALIASES = {"prod": "production", "dev": "development", "test": "testing"}


def _deployment_name() -> str:
    raw = _env("APP_ENV") or _env("ENV") or _env("FLASK_ENV") or "development"
    name = raw.lower()
    return _ENV_ALIASES.get(name, name)


def _pick_config(target: Optional[ConfigTarget]) -> Any:
    """An explicit argument beats FLASK_CONFIG, which beats the deployment name."""
    if target is None:
        target = _env("FLASK_CONFIG")
    if target is None:
        from wholesale.config import CONFIG_BY_NAME

        target = CONFIG_BY_NAME.get(_deployment_name(), CONFIG_BY_NAME["development"])
    return import_string(target) if isinstance(target, str) else target


def status_code_name(status: int) -> str:
    """Snake-case reason phrase, e.g. 404 -> "not_found"."""
    return HTTP_STATUS_CODES.get(int(status), "error").lower().replace(" ", "_").replace("'", "")


def error_response(message: str, status: int, code: Optional[str] = None, **extra: Any):
    """The storefront's error envelope: {"ok": false, "error": {"code", "message", ...}}."""
    error: Dict[str, Any] = {"code": code or status_code_name(status), "message": str(message)}
    error.update({k: v for k, v in extra.items() if v not in (None, "")})
    resp = jsonify({"ok": False, "error": error})
    resp.status_code = int(status)
    return resp


def _speaks_json() -> bool:
    if (request.path or "").startswith(JSON_PREFIXES):
        return True
    return request.is_json or "application/json" in (request.headers.get("Accept") or "").lower()


# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
class RequestIdFilter(logging.Filter):
    """Stamps every record with the current request id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            record.request_id = g.get("request_id", "-")
        except RuntimeError:
            record.request_id = "-"
        return True


def _setup_logging(app: Flask) -> None:
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(logging.StreamHandler())

    for handler in root.handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
        current = getattr(handler.formatter, "_fmt", None) or ""
        if "%(request_id)s" not in current:
            handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root.setLevel(str(app.config.get("LOG_LEVEL") or "INFO").upper())
    logging.getLogger("werkzeug").setLevel(str(app.config.get("WERKZEUG_LOG_LEVEL") or "WARNING").upper())
    app.logger.info("Storefront config %s (debug=%s)", app.config.get("ENV", "?"), app.debug)


def _trust_proxy(app: Flask) -> None:
    # TRUST_PROXY unset means "only in production"
    default = app.config.get("ENV") == "production"
    if not _bool("TRUST_PROXY", default):
        return
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)
    app.logger.info("Trusting X-Forwarded-* headers")


# -----------------------------------------------------------------------------
# Blueprints
# -----------------------------------------------------------------------------
def _mount_blueprints(app: Flask) -> None:
    skipped = {name.strip().lower() for name in (_env("DISABLE_BPS") or "").split(",") if name.strip()}

    for dotted, prefix in BLUEPRINTS:
        short = dotted.rsplit(".", 1)[-1]
        if short in skipped:
            app.logger.info("Blueprint %s disabled via DISABLE_BPS", short)
            continue

        bp = getattr(import_module(dotted), "bp", None)
        if not isinstance(bp, Blueprint):
            raise RuntimeError(f"{dotted} does not define a `bp` blueprint")
        if bp.name in app.blueprints:
            continue

        mount = prefix or bp.url_prefix
        app.register_blueprint(bp, url_prefix=mount)
        app.logger.info("Mounted %s at %s", bp.name, mount or "/")


# -----------------------------------------------------------------------------
# Request hooks
# -----------------------------------------------------------------------------
def _install_request_hooks(app: Flask) -> None:
    @app.before_request
    def _stamp_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g.started_at = time.perf_counter()

    @app.after_request
    def _timing_headers(resp):
        resp.headers["X-Request-ID"] = g.get("request_id", "-")
        started = g.get("started_at")
        if started is not None:
            elapsed_ms = (time.perf_counter() - started) * 1000
            resp.headers["X-Response-Time-ms"] = str(int(elapsed_ms))
        return resp

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        if not _speaks_json():
            return err
        return error_response(err.description or err.name, err.code or 500, request_id=g.get("request_id"))

    @app.errorhandler(Exception)
    def _crash(err: Exception):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return error_response("Internal Server Error", 500, request_id=g.get("request_id"))


def _start_realtime(app: Flask) -> None:
    if not app.config.get("WHOLESALE_REALTIME_ENABLED"):
        return

    from wholesale.services.realtime import start_realtime

    run_bg(start_realtime, app)
    app.logger.info("Realtime listener starting (%s)", app.config.get("WHOLESALE_SOCKET_URL"))


# -----------------------------------------------------------------------------
# App Factory
# -----------------------------------------------------------------------------
def create_app(config_class: Optional[ConfigTarget] = None) -> Flask:
    app = Flask(__name__, static_folder=None)

    cfg = _pick_config(config_class)
    app.config.from_object(cfg)
    if callable(getattr(cfg, "init_app", None)):
        cfg.init_app(app)

    app.url_map.strict_slashes = False
    app.json.sort_keys = False

    _trust_proxy(app)
    _setup_logging(app)

    csrf.init_app(app)
    init_stripe(app)
    init_backend(app)
    import_module("wholesale.sockets")
    socketio.init_app(app, cors_allowed_origins=_env("CORS_ORIGINS", "*"))

    _install_request_hooks(app)
    _mount_blueprints(app)

    from wholesale.cli import wholesale_cli

    app.cli.add_command(wholesale_cli)

    _start_realtime(app)
    return app
