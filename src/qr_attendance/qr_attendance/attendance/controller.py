from __future__ import annotations

import logging

from flask import Flask, jsonify, request

from ..common.http import json_error
from ..common.validators import parse_int
from ..core.constants import DEFAULT_EVENT_ATTENDANCE_LIMIT, DEFAULT_USER_ATTENDANCE_LIMIT
from ..core.exceptions import CapacityError, DuplicateAttendanceError, NotFoundError, ValidationError
from ..container import Container

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    service = container.attendance_service

    @app.route("/api/attendance", methods=["POST"], endpoint="attendance_create")
    def attendance_create():
        """Create one attendance record; 409 means the pair is already canonical."""
        try:
            attendance = service.record(request.get_json(silent=True) or {})
            return (
                jsonify(
                    {
                        "success": True,
                        "message": "Attendance recorded successfully",
                        "attendance": attendance.to_json(),
                    }
                ),
                201,
            )
        except ValidationError as e:
            return json_error(str(e), 400)
        except CapacityError as e:
            return json_error(str(e), 400)
        except DuplicateAttendanceError as e:
            existing = e.existing.to_json() if e.existing else None
            return json_error(str(e), 409, attendance=existing)
        except NotFoundError as e:
            return json_error(str(e), 404)
        except Exception as e:
            logger.exception("Error creating attendance")
            return json_error("Failed to record attendance", 500, message=str(e))

    @app.route("/api/attendance/bulk", methods=["POST"], endpoint="attendance_bulk")
    def attendance_bulk():
        try:
            body = request.get_json(silent=True) or {}
            return jsonify(service.record_bulk(body.get("attendanceRecords")))
        except ValidationError as e:
            return json_error(str(e), 400)
        except Exception as e:
            logger.exception("Error in bulk attendance creation")
            return json_error("Failed to process bulk attendance records", 500, message=str(e))

    @app.route("/api/attendance/user/<user_id>", methods=["GET"], endpoint="attendance_for_user")
    def attendance_for_user(user_id: str):
        try:
            page = service.list_for_user(
                user_id,
                limit=parse_int(request.args.get("limit"), "limit", default=DEFAULT_USER_ATTENDANCE_LIMIT),
                offset=parse_int(request.args.get("offset"), "offset", default=0),
                start_date=request.args.get("startDate"),
                end_date=request.args.get("endDate"),
            )
            return jsonify(page.to_json("attendance", lambda a: a.to_json()))
        except ValidationError as e:
            return json_error(str(e), 400)
        except Exception as e:
            logger.exception("Error fetching user attendance")
            return json_error("Failed to fetch attendance records", 500, message=str(e))

    @app.route("/api/attendance/event/<event_id>", methods=["GET"], endpoint="attendance_for_event")
    def attendance_for_event(event_id: str):
        try:
            page = service.list_for_event(
                event_id,
                limit=parse_int(request.args.get("limit"), "limit", default=DEFAULT_EVENT_ATTENDANCE_LIMIT),
                offset=parse_int(request.args.get("offset"), "offset", default=0),
            )
            return jsonify(page.to_json("attendance", lambda a: a.to_json()))
        except ValidationError as e:
            return json_error(str(e), 400)
        except Exception as e:
            logger.exception("Error fetching event attendance")
            return json_error("Failed to fetch event attendance", 500, message=str(e))

    @app.route("/api/attendance/user/<user_id>/stats", methods=["GET"], endpoint="attendance_user_stats")
    def attendance_user_stats(user_id: str):
        try:
            return jsonify(service.stats_for_user(user_id))
        except Exception as e:
            logger.exception("Error fetching attendance stats")
            return json_error("Failed to fetch attendance statistics", 500, message=str(e))

    @app.route("/api/attendance/range", methods=["GET"], endpoint="attendance_range")
    def attendance_range():
        try:
            rows = service.list_in_range(
                start_date=request.args.get("startDate"),
                end_date=request.args.get("endDate"),
                user_id=request.args.get("userId"),
                event_id=request.args.get("eventId"),
            )
            return jsonify([a.to_json() for a in rows])
        except ValidationError as e:
            return json_error(str(e), 400)
        except Exception as e:
            logger.exception("Error fetching attendance by date range")
            return json_error("Failed to fetch attendance records", 500, message=str(e))
