"""Example: use the service layer directly (no Flask).

Lists the first page of active records as the bootstrap admin, then the
same page again to show the second read coming from Redis.
"""

import importlib

from roster_system.config import get_settings_module
from roster_system.container import build_container
from roster_system.identities.service import principal_for
from roster_system.records.query import PageSpec


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(settings=settings)
    admin = principal_for(container.identities_repo.get_by_email(settings.ADMIN_EMAIL))

    page = container.record_service.list_records(admin, page_spec=PageSpec(page=1, limit=5))
    print(page.to_dict())
    print(container.record_service.get_stats(admin).to_dict())


if __name__ == "__main__":
    main()
