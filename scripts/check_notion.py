#!/usr/bin/env python3
"""CLI script to verify a guild's Notion credentials before a meeting.

Usage:
    python scripts/check_notion.py --guild 123456789012345678
    python scripts/check_notion.py --token secret_xxx --database 0123abcd...

Fetches the database schema with the same client the bot uses and lists the
checkbox properties a meeting can tick, i.e. the display names that will be
tracked. Credentials come either from the guild_settings table (--guild,
using DATABASE_URL from environment or .env) or directly from the flags.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.meetbot
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def check(guild_id: str | None, token: str | None, database_id: str | None) -> int:
    from src.meetbot.core.database import close_db, get_session
    from src.meetbot.guilds.repository import GuildSettingsRepository
    from src.meetbot.notion.client import NotionPageClient
    from src.meetbot.notion.errors import NotionError

    if guild_id:
        repository = GuildSettingsRepository(session_factory=get_session)
        settings = await repository.get(guild_id)
        await close_db()
        if settings is None:
            print(f"Guild {guild_id} has no settings row")
            return 1
        credentials = settings.notion_credentials()
        if credentials is None:
            print(f"Guild {guild_id} is missing its Notion token or database ID")
            return 1
        token, database_id = credentials.token, credentials.database_id

    client = NotionPageClient.from_settings(token)
    try:
        schema = await client.fetch_schema(database_id)
    except NotionError as exc:
        print(f"Notion rejected the credentials: {exc}")
        return 1
    finally:
        await client.aclose()

    print(f"Database {database_id} OK")
    print(f"  Title property: {schema.title_property}")
    tracked = sorted(name for name, kind in schema.properties.items() if kind == "checkbox")
    print(f"  Tracked members ({len(tracked)}): {', '.join(tracked) or '-'}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Verify Notion credentials for meeting tracking")
    parser.add_argument("--guild", help="Discord guild ID to load credentials for")
    parser.add_argument("--token", help="Notion integration token")
    parser.add_argument("--database", help="Notion database ID")
    args = parser.parse_args()

    if not args.guild and not (args.token and args.database):
        parser.error("pass --guild, or both --token and --database")

    sys.exit(asyncio.run(check(args.guild, args.token, args.database)))


if __name__ == "__main__":
    main()
