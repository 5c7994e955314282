"""
Create the database tables (tokens, voting_images, voting_users,
telegram_messages, prompt_queue).

Safe to run repeatedly: existing tables are left untouched.

Usage:
    python scripts/init_db.py
"""

import asyncio

import _common  # noqa: F401

from db.session import close_db, init_db


async def main() -> None:
    print("Creating tables...")
    try:
        await init_db()
        print("✅ Tables are ready.")
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
