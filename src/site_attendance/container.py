from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .attendance.assembler import EventAssembler
from .attendance.mysql_roster_repository import MySQLRosterRepository
from .attendance.repository import RosterRepository
from .attendance.service import AttendanceDashboardService
from .capture.devices import CameraDevice, FixedLocationDevice, LocationDevice
from .capture.orchestrator import SensorOrchestrator
from .capture.workflow import CaptureWorkflow
from .core.constants import DEFAULT_CLOCK_SKEW_SECONDS
from .database.connection import DBConfig, DatabaseConnection
from .geocoding.resolver import GeocodeResolver
from .submission.gateway import HttpSubmissionGateway, StoreSubmissionGateway
from .submission.service import SubmissionService


@dataclass(frozen=True)
class Container:
    """Server side: the roster store and the dashboards reading it."""

    conn: Optional[DatabaseConnection]
    roster_repo: RosterRepository
    store_submissions: SubmissionService
    dashboard_service: AttendanceDashboardService
    assembler: EventAssembler


def build_container(
    *,
    db_config: Optional[Mapping[str, Any]] = None,
    roster_repo: Optional[RosterRepository] = None,
    photo_retention_days: int = 15,
    clock_skew_seconds: int = DEFAULT_CLOCK_SKEW_SECONDS,
) -> Container:
    conn = None
    if roster_repo is None:
        if db_config is None:
            raise ValueError("db_config or roster_repo is required")
        conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))
        roster_repo = MySQLRosterRepository(conn)

    store_submissions = SubmissionService(StoreSubmissionGateway(roster_repo))
    dashboard_service = AttendanceDashboardService(
        roster_repo,
        store_submissions,
        photo_retention_days=photo_retention_days,
    )
    return Container(
        conn=conn,
        roster_repo=roster_repo,
        store_submissions=store_submissions,
        dashboard_service=dashboard_service,
        assembler=EventAssembler(clock_skew_seconds=clock_skew_seconds),
    )


@dataclass(frozen=True)
class CaptureContainer:
    """Client side: devices, geocoder and the REST gateway behind one workflow."""

    geocoder: GeocodeResolver
    orchestrator: SensorOrchestrator
    assembler: EventAssembler
    submissions: SubmissionService

    def new_workflow(self) -> CaptureWorkflow:
        return CaptureWorkflow(self.orchestrator, self.assembler, self.submissions)


def build_capture_container(
    settings,
    *,
    camera: Optional[CameraDevice] = None,
    locator: Optional[LocationDevice] = None,
) -> CaptureContainer:
    if camera is None:
        from .capture.opencv_camera import OpenCVCamera

        camera = OpenCVCamera(getattr(settings, "CAMERA_INDEX", 0))

    if locator is None:
        lat = getattr(settings, "SITE_LATITUDE", None)
        lon = getattr(settings, "SITE_LONGITUDE", None)
        if lat is None or lon is None:
            raise ValueError("A location device is required (or SITE_LATITUDE/SITE_LONGITUDE for a kiosk)")
        locator = FixedLocationDevice(lat, lon)

    geocoder = GeocodeResolver(
        url=settings.GEOCODER_URL,
        user_agent=settings.GEOCODER_USER_AGENT,
        timeout=settings.GEOCODE_TIMEOUT_SECONDS,
    )
    orchestrator = SensorOrchestrator(
        camera,
        locator,
        geocoder,
        location_timeout=settings.LOCATION_TIMEOUT_SECONDS,
    )
    gateway = HttpSubmissionGateway(settings.API_BASE_URL, token=getattr(settings, "API_TOKEN", None))
    return CaptureContainer(
        geocoder=geocoder,
        orchestrator=orchestrator,
        assembler=EventAssembler(clock_skew_seconds=settings.CLOCK_SKEW_SECONDS),
        submissions=SubmissionService(gateway),
    )
