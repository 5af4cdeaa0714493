#!/usr/bin/env python
"""Clear durable assistant thread references so users start fresh threads.

Usage:
    python scripts/reset_threads.py [--db PATH] [--user USER_ID]

Without --user every user's thread is cleared. The next message from an
affected user creates a new thread (and a fresh question state).
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure project root is on sys.path when running from scripts/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from packbot.database.db import init_db
from packbot.database.repository import Repository


async def reset_threads(db_path: str, user_id: str | None = None) -> int:
    """Return the number of users whose thread reference was cleared."""
    conn = await init_db(db_path)
    try:
        return await Repository(conn).clear_thread_ids(user_id)
    finally:
        await conn.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reset PackBot assistant threads.")
    parser.add_argument("--db", default="data/packbot.db", help="Path to SQLite database")
    parser.add_argument("--user", default=None, help="Only reset this user id")
    args = parser.parse_args(argv)

    try:
        count = asyncio.run(reset_threads(args.db, args.user))
    except Exception as exc:
        print(f"Failed to reset threads: {exc}", file=sys.stderr)
        return 1

    print(f"Cleared threads for {count} users.")
    print("Their next message will start a new thread with the latest assistant setup.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
