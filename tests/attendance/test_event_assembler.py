from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from site_attendance.attendance.assembler import EventAssembler
from site_attendance.attendance.model import Location, LocationSnapshot, PhotoRef
from site_attendance.core.enums import EventFlag, EventKind, SubmissionState
from site_attendance.core.exceptions import MalformedLocation, MissingEvidence, ValidationError


@pytest.fixture
def photo(fixed_now):
    return PhotoRef(data=b"\xff\xd8jpeg", captured_at=fixed_now)


def test_assemble_complete_event(photo, fixed_now):
    snapshot = LocationSnapshot(latitude=10.77, longitude=106.69, accuracy_m=8.0, address="Q1, HCMC", resolved_at=fixed_now)

    event = EventAssembler().assemble(EventKind.CHECK_IN, photo, snapshot, "staff-1", fixed_now, now=fixed_now)

    assert event.kind == EventKind.CHECK_IN
    assert event.submission_state == SubmissionState.PENDING
    assert event.location.resolved_address == "Q1, HCMC"
    assert event.flags == frozenset()
    assert event.day == fixed_now.date()
    assert len(event.event_id) == 32


def test_missing_photo_is_hard_failure(fixed_now):
    with pytest.raises(MissingEvidence):
        EventAssembler().assemble("check_in", None, None, "staff-1", fixed_now, now=fixed_now)

    with pytest.raises(MissingEvidence):
        EventAssembler().assemble("check_in", PhotoRef(data=b"", captured_at=fixed_now), None, "staff-1", fixed_now, now=fixed_now)


def test_address_without_coordinates_is_malformed(photo, fixed_now):
    assembler = EventAssembler()

    with pytest.raises(MalformedLocation):
        assembler.assemble("check_in", photo, {"address": "Somewhere"}, "staff-1", fixed_now, now=fixed_now)

    with pytest.raises(MalformedLocation):
        assembler.assemble("check_in", photo, LocationSnapshot(address="Somewhere"), "staff-1", fixed_now, now=fixed_now)


def test_out_of_range_coordinates_are_malformed(photo, fixed_now):
    with pytest.raises(MalformedLocation, match="Vĩ độ"):
        EventAssembler().assemble("check_out", photo, Location(latitude=91.0, longitude=0.0), "staff-1", fixed_now, now=fixed_now)
    with pytest.raises(MalformedLocation, match="Kinh độ"):
        EventAssembler().assemble("check_out", photo, Location(latitude=0.0, longitude=181.0), "staff-1", fixed_now, now=fixed_now)


def test_no_location_is_allowed_but_flagged(photo, fixed_now):
    event = EventAssembler().assemble("check_out", photo, LocationSnapshot(error="timeout"), "staff-1", fixed_now, now=fixed_now)

    assert event.location is None
    assert EventFlag.MISSING_LOCATION in event.flags


def test_stale_and_fallback_address_are_flagged(photo, fixed_now):
    snapshot = LocationSnapshot(latitude=1.0, longitude=2.0, address="Lat: 1.00000, Long: 2.00000", address_is_fallback=True, stale=True)

    event = EventAssembler().assemble("check_in", photo, snapshot, "staff-1", fixed_now, now=fixed_now)

    assert event.flags == frozenset({EventFlag.STALE_LOCATION, EventFlag.UNRESOLVED_ADDRESS})


def test_mapping_location_is_accepted(photo, fixed_now):
    event = EventAssembler().assemble(
        "check_in", photo, {"latitude": "10.5", "longitude": 106.1, "accuracy": 12}, "staff-1", fixed_now, now=fixed_now
    )

    assert event.location.latitude == 10.5
    assert event.location.accuracy_m == 12.0
    assert EventFlag.UNRESOLVED_ADDRESS in event.flags


def test_future_timestamp_beyond_skew_is_rejected(photo, fixed_now):
    assembler = EventAssembler(clock_skew_seconds=60)

    assembler.assemble("check_in", photo, None, "staff-1", fixed_now + timedelta(seconds=59), now=fixed_now)
    with pytest.raises(ValidationError):
        assembler.assemble("check_in", photo, None, "staff-1", fixed_now + timedelta(seconds=61), now=fixed_now)


def test_unknown_kind_is_rejected(photo, fixed_now):
    with pytest.raises(ValidationError):
        EventAssembler().assemble("lunch", photo, None, "staff-1", fixed_now, now=fixed_now)


def test_events_are_independent_per_assembly(photo, fixed_now):
    assembler = EventAssembler()
    a = assembler.assemble("check_in", photo, None, "staff-1", fixed_now, now=fixed_now)
    b = assembler.assemble("check_in", photo, None, "staff-1", fixed_now, now=fixed_now)

    assert a.event_id != b.event_id
    assert isinstance(a.captured_at, datetime)
