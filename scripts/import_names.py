#!/usr/bin/env python
"""Bulk-import games by name from a text file (one name per line).

Runs the same import as POST /api/v1/rawg/bulk, without the HTTP round trip.
Handy for seeding a collection from an exported list.

Usage:
    python scripts/import_names.py alice games.txt
    python scripts/import_names.py alice games.txt --steam --gog
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add app to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gameshelf.core.errors import GameShelfError
from gameshelf.core.rawg_client import get_rawg_client
from gameshelf.db.database import async_session, init_db
from gameshelf.db.schemas import OwnershipFlags
from gameshelf.ingestion.importer import BatchImporter, normalize_name_list
from gameshelf.ingestion.resolver import CatalogResolver
from gameshelf.services.user_service import UserService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Import games by name into a user's collection")
    parser.add_argument("username", help="User to import for")
    parser.add_argument("names_file", type=Path, help="Text file with one game name per line")
    parser.add_argument("--steam", action="store_true", help="Mark imported games as owned on Steam")
    parser.add_argument("--epic", action="store_true", help="Mark imported games as owned on Epic")
    parser.add_argument("--gog", action="store_true", help="Mark imported games as owned on GOG")
    args = parser.parse_args()

    names = normalize_name_list(args.names_file.read_text(encoding="utf-8"))
    if not names:
        logger.error(f"No names found in {args.names_file}")
        return 1

    flags = OwnershipFlags(owned_on_steam=args.steam, owned_on_epic=args.epic, owned_on_gog=args.gog)

    await init_db()
    rawg = get_rawg_client()
    try:
        async with async_session() as session:
            user = await UserService(session).get_by_username(args.username)
            if user is None:
                logger.error(f"User '{args.username}' does not exist")
                return 1

            importer = BatchImporter(session, CatalogResolver(rawg))
            try:
                job, results = await importer.import_batch(user.id, names, flags)
            except GameShelfError as e:
                logger.error(f"Import failed: {e.message}")
                return 1
    finally:
        await rawg.close()

    for result in results:
        if result.success:
            note = " (already owned)" if result.already_owned else ""
            print(f"  + {result.name} -> {result.added_name}{note}")
        else:
            print(f"  x {result.name}: {result.error}")

    failed = sum(1 for result in results if not result.success)
    print(f"Job {job.id}: {len(results) - failed} added, {failed} failed")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
