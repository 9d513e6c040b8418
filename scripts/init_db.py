from __future__ import annotations

from site_attendance.database.bootstrap import apply_schema, list_tables
from site_attendance.database.connection import DBConfig, DatabaseConnection
from site_attendance.main import load_settings


def main() -> None:
    settings = load_settings()
    db_config = DBConfig.from_mapping(settings.DB_CONFIG)
    conn = DatabaseConnection.get_instance(db_config)

    count = apply_schema(conn)
    tables = list_tables(conn)
    print(
        f"OK: Applied schema.sql ({count} statements) -> "
        f"{db_config.user}@{db_config.host}:{db_config.port}/{db_config.database} "
        f"(tables={len(tables)})"
    )


if __name__ == "__main__":
    main()
