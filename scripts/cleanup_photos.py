"""Drop photo payloads older than PHOTO_RETENTION_DAYS.

Note: Chạy định kỳ (cron) hoặc gọi DELETE /api/attendance/cleanup trên server.
"""

from __future__ import annotations

from site_attendance.container import build_container
from site_attendance.main import configure_logging, load_settings


def main() -> None:
    settings = load_settings()
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    container = build_container(
        db_config=settings.DB_CONFIG,
        photo_retention_days=settings.PHOTO_RETENTION_DAYS,
    )
    purged = container.dashboard_service.cleanup_old_photos()
    print(f"OK: Removed photos from {purged} events older than {settings.PHOTO_RETENTION_DAYS} days")


if __name__ == "__main__":
    main()
