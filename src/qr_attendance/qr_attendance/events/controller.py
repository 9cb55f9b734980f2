from __future__ import annotations

import io
import logging

from flask import Flask, jsonify, request, send_file

from ..common.http import json_error
from ..common.validators import parse_int
from ..core.constants import DEFAULT_EVENTS_LIMIT
from ..core.exceptions import DuplicateEventError, NotFoundError, ValidationError
from ..container import Container
from ..qr.payload import encode_payload, generate_qr_png

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    service = container.event_service

    @app.route("/api/events", methods=["GET"], endpoint="events_list")
    def events_list():
        try:
            active_s = request.args.get("active")
            page = service.list_events(
                limit=parse_int(request.args.get("limit"), "limit", default=DEFAULT_EVENTS_LIMIT),
                offset=parse_int(request.args.get("offset"), "offset", default=0),
                active=None if active_s is None else active_s == "true",
                upcoming=request.args.get("upcoming") == "true",
                current=request.args.get("current") == "true",
            )
            return jsonify(page.to_json("events", lambda e: e.to_json()))
        except ValidationError as e:
            return json_error(str(e), 400)
        except Exception as e:
            logger.exception("Error fetching events")
            return json_error("Failed to fetch events", 500, message=str(e))

    @app.route("/api/events/<event_id>", methods=["GET"], endpoint="events_get")
    def events_get(event_id: str):
        try:
            return jsonify(service.get_event(event_id).to_json())
        except NotFoundError as e:
            return json_error(str(e), 404)
        except Exception as e:
            logger.exception("Error fetching event %s", event_id)
            return json_error("Failed to fetch event", 500, message=str(e))

    @app.route("/api/events", methods=["POST"], endpoint="events_create")
    def events_create():
        try:
            event = service.create_event(request.get_json(silent=True) or {})
            return jsonify({"success": True, "message": "Event created successfully", "event": event.to_json()}), 201
        except ValidationError as e:
            return json_error(str(e), 400)
        except DuplicateEventError as e:
            existing = e.existing.to_json() if e.existing else None
            return json_error(str(e), 409, event=existing)
        except Exception as e:
            logger.exception("Error creating event")
            return json_error("Failed to create event", 500, message=str(e))

    @app.route("/api/events/<event_id>", methods=["PUT"], endpoint="events_update")
    def events_update(event_id: str):
        try:
            event = service.update_event(event_id, request.get_json(silent=True) or {})
            return jsonify({"success": True, "message": "Event updated successfully", "event": event.to_json()})
        except ValidationError as e:
            return json_error(str(e), 400)
        except NotFoundError as e:
            return json_error(str(e), 404)
        except Exception as e:
            logger.exception("Error updating event %s", event_id)
            return json_error("Failed to update event", 500, message=str(e))

    @app.route("/api/events/<event_id>", methods=["DELETE"], endpoint="events_delete")
    def events_delete(event_id: str):
        try:
            event = service.deactivate_event(event_id)
            return jsonify({"success": True, "message": "Event deactivated successfully", "event": event.to_json()})
        except NotFoundError as e:
            return json_error(str(e), 404)
        except Exception as e:
            logger.exception("Error deleting event %s", event_id)
            return json_error("Failed to delete event", 500, message=str(e))

    @app.route("/api/events/range/<start_date>/<end_date>", methods=["GET"], endpoint="events_range")
    def events_range(start_date: str, end_date: str):
        try:
            events = service.events_in_range(start_date, end_date, active=request.args.get("active", "true"))
            return jsonify([e.to_json() for e in events])
        except ValidationError as e:
            return json_error(str(e), 400)
        except Exception as e:
            logger.exception("Error fetching events by date range")
            return json_error("Failed to fetch events", 500, message=str(e))

    @app.route("/api/events/<event_id>/qr", methods=["GET"], endpoint="events_qr")
    def events_qr(event_id: str):
        try:
            return jsonify(service.qr_for_event(event_id))
        except NotFoundError as e:
            return json_error(str(e), 404)
        except Exception as e:
            logger.exception("Error fetching event QR data %s", event_id)
            return json_error("Failed to fetch QR data", 500, message=str(e))

    @app.route("/api/events/<event_id>/qr.png", methods=["GET"], endpoint="events_qr_image")
    def events_qr_image(event_id: str):
        try:
            qr = service.qr_for_event(event_id)
            png = generate_qr_png(encode_payload(qr["qrData"]))
            return send_file(io.BytesIO(png), mimetype="image/png")
        except NotFoundError as e:
            return json_error(str(e), 404)
        except Exception as e:
            logger.exception("Error generating QR image %s", event_id)
            return json_error("Failed to generate QR code", 500, message=str(e))
