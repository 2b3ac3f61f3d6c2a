#!/usr/bin/env python
"""Provision an API user and print their bearer token.

The token is only stored hashed, so it is printed exactly once. Use
--rotate to issue a new token for an existing user.

Usage:
    python scripts/create_user.py alice
    python scripts/create_user.py alice --rotate
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add app to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gameshelf.db.database import async_session, init_db
from gameshelf.services.user_service import UserService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Create a GameShelf API user")
    parser.add_argument("username", help="Unique username")
    parser.add_argument(
        "--rotate",
        action="store_true",
        help="Issue a new token for an existing user (the old one stops working)",
    )
    args = parser.parse_args()

    await init_db()

    async with async_session() as session:
        users = UserService(session)
        existing = await users.get_by_username(args.username)

        if args.rotate:
            if existing is None:
                logger.error(f"User '{args.username}' does not exist")
                return 1
            token = await users.rotate_token(existing)
        else:
            if existing is not None:
                logger.error(f"User '{args.username}' already exists (use --rotate for a new token)")
                return 1
            _, token = await users.create_user(args.username)

    print(f"Bearer token for {args.username}: {token}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
