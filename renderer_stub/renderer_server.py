"""
Local stand-in for an overlay renderer.

Accepts the JSON payloads the dispatcher POSTs and keeps the most recent ones
in memory, so a configuration can be checked end to end without a TV.

Run with ``python -m renderer_stub.renderer_server`` and point a device's
``server_url`` at ``http://127.0.0.1:5001/notify``.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv
from flask import Flask, jsonify, request

from overlay_notifier.domain.models import summarize_wire

logger = logging.getLogger(__name__)

MAX_EVENTS = 500


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def create_app(token: str | None = None) -> Flask:
    """
    Build the stub application.

    Parameters
    ----------
    token
        If set, POST /notify requires ``Authorization: Bearer <token>``.
    """
    app = Flask(__name__)
    events: List[Dict[str, Any]] = []
    app.config["EVENTS"] = events

    def require_bearer_if_configured(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not token:
                return fn(*args, **kwargs)
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                return jsonify({"error": "unauthorized"}), 401
            if auth.removeprefix("Bearer ").strip() != token:
                return jsonify({"error": "invalid token"}), 403
            return fn(*args, **kwargs)
        return wrapper

    @app.post("/notify")
    @require_bearer_if_configured
    def notify():
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or "title" not in data:
            return jsonify({"error": "expected a JSON object with a title"}), 400

        events.append({"received_at": _now_iso(), "body": data})
        if len(events) > MAX_EVENTS:
            del events[:-MAX_EVENTS]

        logger.info("Notification received: %s", summarize_wire(data))
        return jsonify({"status": "ok"}), 200

    @app.get("/api/notifications/recent")
    def api_recent():
        recent = [
            {"received_at": e["received_at"], "body": summarize_wire(e["body"])}
            for e in reversed(events[-200:])
        ]
        return jsonify({"count": len(events), "notifications": recent}), 200

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"}), 200

    return app


if __name__ == "__main__":
    # .env next to the executable, or next to this file from source
    base_dir = Path(sys.executable).resolve().parent if getattr(sys, "frozen", False) else Path(__file__).resolve().parent
    load_dotenv(base_dir / ".env")
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    stub = create_app(token=os.getenv("RENDERER_TOKEN") or None)
    stub.run(host=os.getenv("RENDERER_HOST", "0.0.0.0"), port=int(os.getenv("RENDERER_PORT", "5001")), debug=False)
