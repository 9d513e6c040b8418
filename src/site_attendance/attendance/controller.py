from __future__ import annotations

import logging
from datetime import date

from flask import Flask, jsonify, request

from ..common.datetime_utils import now_local, parse_iso_date
from ..container import Container
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.exceptions import DomainError, SubmissionFailure, ValidationError
from ..submission.gateway import event_from_payload
from .derivation import RosterDayRow, RosterSummary
from .model import AttendanceEvent

logger = logging.getLogger(__name__)


def _summary_json(s: RosterSummary) -> dict:
    return {
        "present": s.present,
        "absent": s.absent,
        "notMarked": s.not_marked,
        "total": s.total,
        "percentage": s.percentage,
    }


def _row_json(r: RosterDayRow) -> dict:
    return {
        "workerId": r.subject_id,
        "name": r.name,
        "role": r.role,
        "status": r.status.value,
        "attendanceTime": r.marked_at.strftime("%H:%M") if r.marked_at else None,
    }


def _event_json(e: AttendanceEvent) -> dict:
    loc = e.location
    return {
        "id": e.event_id,
        "type": e.kind.value,
        "timestamp": e.captured_at.isoformat(),
        "location": {
            "latitude": loc.latitude,
            "longitude": loc.longitude,
            "accuracy": loc.accuracy_m,
            "displayText": loc.display_text,
        } if loc else None,
        "hasPhoto": e.photo is not None,
        "flags": sorted(f.value for f in e.flags),
    }


def _date_arg(name: str, default: date | None = None) -> date:
    value = request.args.get(name)
    if not value:
        if default is None:
            raise ValidationError(f"Thiếu tham số {name}")
        return default
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{name} phải có dạng YYYY-MM-DD") from None


def _int_arg(name: str, default: int) -> int:
    value = request.args.get(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} phải là số nguyên") from None


def register(app: Flask, container: Container) -> None:
    service = container.dashboard_service

    @app.errorhandler(ValidationError)
    def handle_validation(e: ValidationError):
        return jsonify({"success": False, "message": str(e)}), 400

    @app.errorhandler(SubmissionFailure)
    def handle_submission(e: SubmissionFailure):
        logger.warning("Store write failed: %s", e)
        return jsonify({"success": False, "message": str(e)}), 502

    @app.errorhandler(DomainError)
    def handle_domain(e: DomainError):
        return jsonify({"success": False, "message": str(e)}), 409

    @app.route("/api/sites/<site_id>/attendance/summary", methods=["GET"], endpoint="site_attendance_summary")
    def site_summary(site_id: str):
        on = _date_arg("date", now_local().date())
        summary = service.site_summary(site_id, on)
        return jsonify({"success": True, "date": on.isoformat(), "data": _summary_json(summary)})

    @app.route("/api/sites/<site_id>/attendance", methods=["GET"], endpoint="site_attendance_report")
    def site_report(site_id: str):
        on = _date_arg("date", now_local().date())
        rows = service.site_day_report(site_id, on)
        return jsonify({"success": True, "date": on.isoformat(), "data": [_row_json(r) for r in rows]})

    @app.route("/api/sites/<site_id>/attendance/trend", methods=["GET"], endpoint="site_attendance_trend")
    def site_trend(site_id: str):
        trend = service.site_trend(site_id, _date_arg("start"), _date_arg("end"))
        return jsonify(
            {
                "success": True,
                "data": [{"date": d.isoformat(), **_summary_json(s)} for d, s in trend.items()],
            }
        )

    @app.route("/api/sites/<site_id>/workers/<worker_id>/attendance", methods=["POST"], endpoint="mark_worker_attendance")
    def mark_worker(site_id: str, worker_id: str):
        data = request.get_json(silent=True) or {}
        on = None
        if data.get("date"):
            try:
                on = parse_iso_date(str(data["date"])[:10])
            except ValueError:
                raise ValidationError("date phải có dạng YYYY-MM-DD") from None
        mark = service.record_mark(
            site_id=site_id,
            subject_id=worker_id,
            status=data.get("status", "present"),
            on=on,
            marked_by=data.get("supervisorId"),
        )
        return (
            jsonify(
                {
                    "success": True,
                    "message": "Attendance marked successfully",
                    "data": {
                        "workerId": mark.subject_id,
                        "date": mark.date.isoformat(),
                        "status": mark.status.value,
                        "createdAt": mark.created_at.isoformat(),
                    },
                }
            ),
            201,
        )

    @app.route("/api/subjects/<subject_id>/calendar", methods=["GET"], endpoint="subject_calendar")
    def subject_calendar(subject_id: str):
        today = now_local().date()
        days = service.subject_calendar(subject_id, _int_arg("year", today.year), _int_arg("month", today.month))
        return jsonify(
            {
                "success": True,
                "data": [
                    {
                        "date": d.isoformat(),
                        "hasCheckIn": c.has_check_in,
                        "hasCheckOut": c.has_check_out,
                        "dayClass": c.day_class.value,
                    }
                    for d, c in days.items()
                ],
            }
        )

    @app.route("/api/subjects/<subject_id>/days/<day>", methods=["GET"], endpoint="subject_day")
    def subject_day(subject_id: str, day: str):
        try:
            on = parse_iso_date(day)
        except ValueError:
            raise ValidationError("Ngày phải có dạng YYYY-MM-DD") from None
        detail = service.subject_day(subject_id, on)
        return jsonify(
            {
                "success": True,
                "date": on.isoformat(),
                "dayClass": detail.classification.day_class.value,
                "data": [_event_json(e) for e in detail.events],
            }
        )

    @app.route("/api/subjects/<subject_id>/history", methods=["GET"], endpoint="subject_history")
    def subject_history(subject_id: str):
        events = service.subject_history(subject_id, _int_arg("limit", DEFAULT_HISTORY_LIMIT))
        return jsonify({"success": True, "count": len(events), "data": [_event_json(e) for e in events]})

    @app.route("/api/attendance", methods=["POST"], endpoint="submit_attendance_event")
    def submit_event():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Dữ liệu chấm công phải là JSON")

        event = event_from_payload(data, container.assembler)
        try:
            stored = container.store_submissions.submit(event)
        except SubmissionFailure:
            # The client keeps its own copy for retry; nothing is held here.
            container.store_submissions.discard(event.event_id)
            raise

        logger.info("Stored %s event %s for %s", stored.kind.value, stored.event_id, stored.subject_id)
        return (
            jsonify(
                {
                    "success": True,
                    "message": "Attendance recorded successfully",
                    "data": {
                        "id": stored.event_id,
                        "type": stored.kind.value,
                        "timestamp": stored.captured_at.isoformat(),
                        "flags": sorted(f.value for f in stored.flags),
                    },
                }
            ),
            201,
        )

    @app.route("/api/attendance/cleanup", methods=["DELETE"], endpoint="attendance_cleanup")
    def cleanup():
        purged = service.cleanup_old_photos()
        return jsonify({"success": True, "message": f"Cleaned up {purged} photos", "purged": purged})
