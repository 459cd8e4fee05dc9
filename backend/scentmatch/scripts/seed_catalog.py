"""
ScentMatch Backend — Demo Catalog Seeder
==========================================

What:  Inserts three notes (Bergamot, Cedar, Sandalwood) and one perfume
       (Bleu de Chanel) linked at top / heart / base.
Why:   Gives a fresh database something to list while the real ingestion
       job does not exist yet.
How:   `python -m scentmatch.scripts.seed_catalog` against DATABASE_URL.
       Safe to run repeatedly. Pass --create-tables for a SQLite scratch
       database that has not been migrated.
"""

import argparse
import asyncio
import logging

from scentmatch.config import settings
from scentmatch.database import Database
from scentmatch.main import setup_logging
from scentmatch.services.catalog_service import catalog_service

logger = logging.getLogger(__name__)


async def seed(database: Database, create_tables: bool = False) -> None:
    if create_tables:
        await database.create_all()

    async with database.session() as session:
        perfume = await catalog_service.seed_demo_catalog(session)
        await session.commit()

    pyramid = ", ".join(f"{n.name} ({n.note_level})" for n in perfume.notes)
    logger.info("Demo catalog ready: %s by %s [%s]", perfume.name, perfume.brand, pyramid)


async def main(create_tables: bool = False) -> None:
    database = Database.from_settings(settings)
    try:
        await seed(database, create_tables=create_tables)
    finally:
        await database.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the demo perfume catalog.")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables from the ORM models first (scratch databases only)",
    )
    args = parser.parse_args()

    setup_logging()
    asyncio.run(main(create_tables=args.create_tables))
