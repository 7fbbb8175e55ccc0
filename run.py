#!/usr/bin/env python3
"""
Wholesale storefront launcher.

- Local dev:   ./run.py --env development
- Production:  ENV=production TRUST_PROXY=1 ./run.py --env production --no-reload
- Gunicorn:    gunicorn --threads 8 "wsgi:app"
"""

from __future__ import annotations

import argparse
import logging
import os
import socket

from dotenv import load_dotenv


def _port_in_use(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(0.5)
        return s.connect_ex(("127.0.0.1" if host in ("0.0.0.0", "") else host, port)) == 0


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the wholesale storefront")
    p.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    p.add_argument("--port", type=int, default=int(os.getenv("PORT", "5000")))
    p.add_argument("--env", choices=["development", "testing", "production"], default=os.getenv("ENV", "development"))
    p.add_argument("--no-reload", action="store_true", help="Disable the Werkzeug reloader.")
    p.add_argument("--force", dest="force_run", action="store_true")
    return p.parse_args()


def main() -> None:
    load_dotenv(override=False)
    args = parse_args()

    os.environ["ENV"] = args.env
    os.environ["APP_ENV"] = args.env

    if not args.force_run and _port_in_use(args.host, args.port):
        logging.error("Port %s already in use (host=%s). Stop the other process or use --force.", args.port, args.host)
        raise SystemExit(2)

    from wholesale import create_app
    from wholesale.extensions import socketio

    flask_app = create_app()
    debug = args.env != "production"
    logging.info("Socket.IO async mode: %s", socketio.async_mode)
    socketio.run(
        flask_app,
        host=args.host,
        port=args.port,
        debug=debug,
        use_reloader=debug and not args.no_reload,
        allow_unsafe_werkzeug=debug,
    )


if __name__ == "__main__":
    main()
