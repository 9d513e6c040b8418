from __future__ import annotations

import base64
import json
from datetime import date, datetime

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from site_attendance.attendance.model import AttendanceEvent, DailyMark, Location, PhotoRef
from site_attendance.core.enums import EventFlag, EventKind, MarkStatus
from site_attendance.submission.gateway import HttpSubmissionGateway, event_payload


def make_response(status: int, body) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = "OK" if status < 400 else "Error"
    response._content = json.dumps(body).encode("utf-8")
    response._content_consumed = True
    return response


class StubSession:
    def __init__(self, response: requests.Response):
        self.headers = CaseInsensitiveDict()
        self.response = response
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        return self.response


AT = datetime(2024, 1, 1, 8, 5)


def checkout_event() -> AttendanceEvent:
    return AttendanceEvent(
        event_id="abc123",
        subject_id="staff-1",
        kind=EventKind.CHECK_OUT,
        captured_at=AT,
        photo=PhotoRef(data=b"\xff\xd8", captured_at=AT),
        location=Location(latitude=10.0, longitude=106.0, accuracy_m=7.0, resolved_address="Q1", resolved_at=AT),
        flags=frozenset({EventFlag.STALE_LOCATION}),
    )


def test_event_payload_uses_wire_names():
    payload = event_payload(checkout_event())

    assert payload["type"] == "logout"
    assert payload["photo"] == "data:image/jpeg;base64," + base64.b64encode(b"\xff\xd8").decode("ascii")
    assert payload["location"]["address"] == "Q1"
    assert payload["userId"] == "staff-1"
    assert payload["clientEventId"] == "abc123"
    assert payload["flags"] == ["stale_location"]


def test_event_is_posted_with_bearer_token():
    session = StubSession(make_response(201, {"success": True, "data": {"_id": "db-9"}}))
    gateway = HttpSubmissionGateway("https://api.test/", token="t0k", timeout=4, session=session)

    ack = gateway.submit(checkout_event())

    assert ack.success
    assert ack.record_id == "db-9"
    url, body, timeout = session.posts[0]
    assert url == "https://api.test/api/attendance"
    assert body["type"] == "logout"
    assert timeout == 4.0
    assert session.headers["Authorization"] == "Bearer t0k"


@pytest.mark.parametrize(
    "status,body",
    [(400, {"success": False, "message": "Already checked out"}), (200, {"success": False, "message": "nope"})],
)
def test_rejections_become_negative_ack(status, body):
    gateway = HttpSubmissionGateway("https://api.test", session=StubSession(make_response(status, body)))

    ack = gateway.submit(checkout_event())

    assert not ack.success
    assert ack.message == body["message"]


def test_mark_goes_to_worker_route():
    session = StubSession(make_response(201, {"success": True}))
    gateway = HttpSubmissionGateway("https://api.test", session=session)
    mark = DailyMark(
        subject_id="w1",
        date=date(2024, 1, 1),
        status=MarkStatus.ABSENT,
        created_at=AT,
        site_id="site-1",
        marked_by="sup-1",
    )

    assert gateway.submit(mark).success
    url, body, _ = session.posts[0]
    assert url == "https://api.test/api/sites/site-1/workers/w1/attendance"
    assert body == {"date": "2024-01-01", "status": "absent", "createdAt": AT.isoformat(), "supervisorId": "sup-1"}


def test_mark_without_site_cannot_be_routed():
    gateway = HttpSubmissionGateway("https://api.test", session=StubSession(make_response(201, {})))
    mark = DailyMark(subject_id="w1", date=date(2024, 1, 1), status=MarkStatus.PRESENT, created_at=AT)

    with pytest.raises(ValueError):
        gateway.submit(mark)
