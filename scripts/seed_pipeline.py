"""Create the schema and install the demo pipeline on DATABASE_URL."""

from __future__ import annotations

import logging

from leadflow.database.db import get_db_session
from leadflow.database.init_db import init_db
from leadflow.database.seed import seed_demo_pipeline

logger = logging.getLogger(__name__)


def main() -> None:
    init_db()
    with get_db_session() as db:
        tenant = seed_demo_pipeline(db)
        logger.info("scripts.seed.done", extra={"event": "scripts.seed.done", "tenant_id": tenant.id})
        print(f"Seeded demo pipeline for tenant {tenant.tenant_key} ({tenant.id})")


if __name__ == "__main__":
    main()
