from __future__ import annotations

import importlib

from dotenv import load_dotenv

from roster_system.config import get_settings_module
from roster_system.container import build_container
from roster_system.core.exceptions import DuplicateKeyError
from roster_system.database.bootstrap import ensure_admin_identity
from roster_system.identities.service import principal_for

DEMO_RECORDS = [
    {"name": "Jane Smith", "email": "jane.smith@example.com", "age": 28, "class_name": "Grade 10",
     "subjects": ["Math", "Physics"], "department": "Science", "salary": 52000},
    {"name": "John Doe", "email": "john.doe@example.com", "age": 35, "class_name": "Grade 11",
     "subjects": ["History"], "department": "Humanities", "salary": 48000},
    {"name": "Maria Garcia", "email": "maria.garcia@example.com", "age": 42, "class_name": "Grade 9",
     "subjects": ["Spanish", "Literature"], "department": "Languages", "salary": 55000},
]


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    container = build_container(settings=settings)

    ensure_admin_identity(container.conn, email=settings.ADMIN_EMAIL, password=settings.ADMIN_PASSWORD)
    admin = container.identities_repo.get_by_email(settings.ADMIN_EMAIL)
    principal = principal_for(admin)

    created = 0
    for data in DEMO_RECORDS:
        try:
            container.record_service.create_record(principal, data)
            created += 1
        except DuplicateKeyError:
            continue

    db_config = settings.DB_CONFIG
    print(
        "OK: Seeded database -> "
        f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')} "
        f"(admin={settings.ADMIN_EMAIL}, new records={created})"
    )


if __name__ == "__main__":
    main()
