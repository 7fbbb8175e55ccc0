# wholesale/sockets.py
# Browser-facing socket handlers: shoppers join one room per fundraiser slug
# and receive rebroadcast stock events for that fundraiser.

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask_socketio import join_room, leave_room

from wholesale.extensions import socketio

log = logging.getLogger(__name__)


def _slug(data: Optional[Dict[str, Any]]) -> str:
    if not isinstance(data, dict):
        return ""
    return str(data.get("slug") or "").strip()


@socketio.on("join_fundraiser")
def on_join_fundraiser(data=None):
    slug = _slug(data)
    if not slug:
        return {"ok": False, "error": "slug is required"}
    join_room(slug)
    log.debug("socket joined room %s", slug)
    return {"ok": True, "room": slug}


@socketio.on("leave_fundraiser")
def on_leave_fundraiser(data=None):
    slug = _slug(data)
    if slug:
        leave_room(slug)
    return {"ok": True}
