"""Ví dụ: một lần check-in trên máy kiosk tại công trường (không qua Flask).

Cần SITE_LATITUDE/SITE_LONGITUDE và API_BASE_URL trong .env; camera lấy từ CAMERA_INDEX.
"""

import asyncio
import sys

from site_attendance.container import build_capture_container
from site_attendance.core.exceptions import DomainError
from site_attendance.main import configure_logging, load_settings


async def check_in(subject_id: str) -> None:
    settings = load_settings()
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    capture = build_capture_container(settings)
    workflow = capture.new_workflow()

    try:
        await workflow.start(subject_id, "check_in")
        await workflow.capture()
        location = await workflow.wait_for_location(timeout=settings.LOCATION_TIMEOUT_SECONDS)
        print("Location:", location.address or "(none)")
        event = await workflow.submit()
        print("Submitted", event.event_id, sorted(f.value for f in event.flags))
    except DomainError as e:
        print("Check-in failed:", e)
        workflow.cancel()
    finally:
        capture.geocoder.close()


if __name__ == "__main__":
    asyncio.run(check_in(sys.argv[1] if len(sys.argv) > 1 else "worker-1"))
