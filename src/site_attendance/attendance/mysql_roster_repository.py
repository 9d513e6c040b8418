from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Sequence

from ..core.enums import EventFlag, EventKind, MarkStatus, SubmissionState
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, placeholders
from .model import AttendanceEvent, DailyMark, Location, PhotoRef, Roster, RosterEntry
from .repository import RosterRepository

_MARK_COLUMNS = "mark_id, subject_id, site_id, mark_date, status, created_at, marked_by"
_EVENT_COLUMNS = (
    "event_id, subject_id, kind, captured_at, photo, photo_content_type, photo_captured_at, "
    "latitude, longitude, accuracy_m, resolved_address, resolved_at, flags"
)


def _row_to_mark(r: Dict[str, Any]) -> DailyMark:
    return DailyMark(
        subject_id=str(r["subject_id"]),
        date=r["mark_date"],
        status=MarkStatus(r["status"]),
        created_at=r["created_at"],
        mark_id=int(r["mark_id"]),
        site_id=r.get("site_id"),
        marked_by=r.get("marked_by"),
    )


def _row_to_event(r: Dict[str, Any]) -> AttendanceEvent:
    photo = None
    if r.get("photo") is not None:
        photo = PhotoRef(
            data=bytes(r["photo"]),
            captured_at=r.get("photo_captured_at") or r["captured_at"],
            content_type=r.get("photo_content_type") or "image/jpeg",
        )

    location = None
    if r.get("latitude") is not None and r.get("longitude") is not None:
        location = Location(
            latitude=float(r["latitude"]),
            longitude=float(r["longitude"]),
            accuracy_m=float(r["accuracy_m"]) if r.get("accuracy_m") is not None else None,
            resolved_address=r.get("resolved_address"),
            resolved_at=r.get("resolved_at"),
        )

    flags = frozenset(EventFlag(f) for f in (r.get("flags") or "").split(",") if f)
    return AttendanceEvent(
        event_id=str(r["event_id"]),
        subject_id=str(r["subject_id"]),
        kind=EventKind(r["kind"]),
        captured_at=r["captured_at"],
        photo=photo,
        location=location,
        flags=flags,
        # Anything the store holds has been acknowledged.
        submission_state=SubmissionState.SUBMITTED,
    )


class MySQLRosterRepository(RosterRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_roster(self, site_id: str) -> Optional[Roster]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT site_id FROM sites WHERE site_id=%s", (site_id,))
            if not fetchone(cur):
                return None

            cur.execute(
                """
                SELECT w.worker_id, w.full_name, w.role
                FROM site_workers sw
                JOIN workers w ON w.worker_id = sw.worker_id
                WHERE sw.site_id=%s
                ORDER BY w.full_name ASC, w.worker_id ASC
                """,
                (site_id,),
            )
            workers = fetchall(cur)

            marks_by_subject: dict[str, list[DailyMark]] = defaultdict(list)
            worker_ids = [str(w["worker_id"]) for w in workers]
            if worker_ids:
                cur.execute(
                    f"SELECT {_MARK_COLUMNS} FROM daily_marks WHERE subject_id IN ({placeholders(worker_ids)})",
                    tuple(worker_ids),
                )
                for r in fetchall(cur):
                    marks_by_subject[str(r["subject_id"])].append(_row_to_mark(r))

        entries = [
            RosterEntry(
                subject_id=str(w["worker_id"]),
                name=w["full_name"],
                role=w.get("role"),
                marks=tuple(marks_by_subject.get(str(w["worker_id"]), ())),
            )
            for w in workers
        ]
        return Roster(site_id=site_id, entries=tuple(entries))

    def marks_for(self, subject_id: str) -> Sequence[DailyMark]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_MARK_COLUMNS} FROM daily_marks WHERE subject_id=%s", (subject_id,))
            return [_row_to_mark(r) for r in fetchall(cur)]

    def events_for(
        self,
        subject_id: str,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> Sequence[AttendanceEvent]:
        clauses = ["subject_id=%s"]
        params: list[object] = [subject_id]

        if start is not None:
            clauses.append("captured_at >= %s")
            params.append(datetime.combine(start, datetime.min.time()))
        if end is not None:
            clauses.append("captured_at < %s")
            params.append(datetime.combine(end + timedelta(days=1), datetime.min.time()))

        sql = f"SELECT {_EVENT_COLUMNS} FROM attendance_events WHERE {' AND '.join(clauses)} ORDER BY captured_at DESC"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_event(r) for r in fetchall(cur)]

    def append_mark(self, mark: DailyMark) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO daily_marks(subject_id, site_id, mark_date, status, created_at, marked_by)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (mark.subject_id, mark.site_id, mark.date, mark.status.value, mark.created_at, mark.marked_by),
            )
            return int(cur.lastrowid)

    def append_event(self, event: AttendanceEvent) -> int:
        photo = event.photo
        loc = event.location
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_events(
                    event_id, subject_id, kind, captured_at,
                    photo, photo_content_type, photo_captured_at,
                    latitude, longitude, accuracy_m, resolved_address, resolved_at, flags
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    event.event_id,
                    event.subject_id,
                    event.kind.value,
                    event.captured_at,
                    photo.data if photo else None,
                    photo.content_type if photo else "image/jpeg",
                    photo.captured_at if photo else None,
                    loc.latitude if loc else None,
                    loc.longitude if loc else None,
                    loc.accuracy_m if loc else None,
                    loc.resolved_address if loc else None,
                    loc.resolved_at if loc else None,
                    ",".join(sorted(f.value for f in event.flags)),
                ),
            )
            return int(cur.lastrowid)

    def purge_photos_before(self, cutoff: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_events SET photo=NULL WHERE photo_uploaded_at < %s AND photo IS NOT NULL",
                (cutoff,),
            )
            return int(cur.rowcount)
