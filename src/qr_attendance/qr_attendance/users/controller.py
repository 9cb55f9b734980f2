from __future__ import annotations

import logging

from flask import Flask, jsonify

from ..common.http import json_error
from ..container import Container

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    @app.route("/api/users/<user_id>", methods=["GET"], endpoint="users_profile")
    def users_profile(user_id: str):
        try:
            return jsonify(container.user_profile_service.profile(user_id))
        except Exception as e:
            logger.exception("Error fetching user profile")
            return json_error("Failed to fetch user profile", 500, message=str(e))
