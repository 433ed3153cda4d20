import aiosqlite
import asyncio

from .config import settings

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS api_cache (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        url TEXT UNIQUE NOT NULL,
        data TEXT NOT NULL,
        timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS leagues (
        id TEXT PRIMARY KEY,
        sleeper_league_id TEXT UNIQUE NOT NULL,
        name TEXT NOT NULL,
        season TEXT NOT NULL,
        season_type TEXT NOT NULL DEFAULT 'regular',
        status TEXT,
        total_rosters INTEGER NOT NULL DEFAULT 0,
        previous_league_id TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS managers (
        id TEXT PRIMARY KEY,
        sleeper_user_id TEXT UNIQUE,
        username TEXT NOT NULL,
        display_name TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS players (
        id TEXT PRIMARY KEY,
        sleeper_id TEXT UNIQUE,
        full_name TEXT,
        position TEXT,
        team TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS draft_picks (
        id TEXT PRIMARY KEY,
        league_id TEXT NOT NULL REFERENCES leagues (id),
        season TEXT NOT NULL,
        round INTEGER NOT NULL,
        original_owner_id TEXT NOT NULL REFERENCES managers (id),
        current_owner_id TEXT REFERENCES managers (id),
        previous_owner_id TEXT REFERENCES managers (id),
        pick_number INTEGER,
        player_selected_id TEXT REFERENCES players (id),
        UNIQUE (league_id, season, round, original_owner_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id TEXT PRIMARY KEY,
        sleeper_transaction_id TEXT UNIQUE,
        league_id TEXT NOT NULL REFERENCES leagues (id),
        type TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'complete',
        week INTEGER,
        timestamp TEXT NOT NULL,
        creator TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transaction_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        transaction_id TEXT NOT NULL REFERENCES transactions (id),
        position INTEGER NOT NULL,
        type TEXT NOT NULL,
        manager_id TEXT REFERENCES managers (id),
        player_id TEXT REFERENCES players (id),
        draft_pick_id TEXT REFERENCES draft_picks (id),
        faab_amount INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS rosters (
        id TEXT PRIMARY KEY,
        league_id TEXT NOT NULL REFERENCES leagues (id),
        manager_id TEXT NOT NULL REFERENCES managers (id),
        week INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS roster_slots (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        roster_id TEXT NOT NULL REFERENCES rosters (id),
        player_id TEXT NOT NULL REFERENCES players (id),
        position TEXT NOT NULL DEFAULT 'BN'
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_transactions_league ON transactions (league_id, timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_transaction_items_tx ON transaction_items (transaction_id, position)",
    "CREATE INDEX IF NOT EXISTS idx_roster_slots_player ON roster_slots (player_id)",
]


async def get_db_connection(database_url: str = None):
    db = await aiosqlite.connect(database_url or settings.database_url)
    db.row_factory = aiosqlite.Row
    return db


async def create_tables(database_url: str = None):
    async with aiosqlite.connect(database_url or settings.database_url) as db:
        for statement in SCHEMA:
            await db.execute(statement)
        await db.commit()

if __name__ == "__main__":
    asyncio.run(create_tables())
