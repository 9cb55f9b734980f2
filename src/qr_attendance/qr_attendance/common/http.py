from __future__ import annotations

from flask import jsonify


def json_error(error: str, status: int, *, message: str | None = None, **extra):
    """Error body shape shared by every API route: ``{"error": ..., "message"?: ...}``."""

    body = {"error": error}
    if message is not None:
        body["message"] = message
    body.update(extra)
    return jsonify(body), status
