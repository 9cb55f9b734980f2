from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .database.connection import DatabaseConnection, DBConfig
from .events.mysql_event_repository import MySQLEventRepository
from .events.repository import EventRepository
from .events.service import EventService
from .users.service import UserProfileService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    events_repo: EventRepository
    attendance_repo: AttendanceRepository

    event_service: EventService
    attendance_service: AttendanceService
    user_profile_service: UserProfileService


def build_services(
    *,
    events_repo: EventRepository,
    attendance_repo: AttendanceRepository,
    conn: Optional[DatabaseConnection] = None,
) -> Container:
    event_service = EventService(events_repo)
    attendance_service = AttendanceService(attendance_repo, events_repo)
    user_profile_service = UserProfileService(attendance_repo, attendance_service)

    return Container(
        conn=conn,
        events_repo=events_repo,
        attendance_repo=attendance_repo,
        event_service=event_service,
        attendance_service=attendance_service,
        user_profile_service=user_profile_service,
    )


def build_container(*, db_config: dict) -> Container:
    conn = DatabaseConnection(DBConfig.from_dict(db_config))
    return build_services(
        events_repo=MySQLEventRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        conn=conn,
    )
