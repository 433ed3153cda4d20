import httpx
import json
import logging
from datetime import datetime, timedelta, timezone

from . import database
from .config import settings

logger = logging.getLogger(__name__)


async def get(url: str):
    """
    A generic, caching GET request for the Sleeper API.
    """
    db = await database.get_db_connection()
    try:
        # 1. Check cache
        cursor = await db.execute("SELECT data, timestamp FROM api_cache WHERE url = ?", (url,))
        row = await cursor.fetchone()

        if row:
            cached_data = json.loads(row["data"])
            timestamp = datetime.fromisoformat(row["timestamp"])
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
            if datetime.now(timezone.utc) - timestamp < timedelta(seconds=settings.cache_ttl_seconds):
                return cached_data

        # 2. If not in cache or stale, fetch from API
        logger.debug("Fetching %s", url)
        async with httpx.AsyncClient() as client:
            response = await client.get(url)
            response.raise_for_status()
            fresh_data = response.json()

            # 3. Store in cache
            await db.execute(
                "INSERT OR REPLACE INTO api_cache (url, data, timestamp) VALUES (?, ?, ?)",
                (url, json.dumps(fresh_data), datetime.now(timezone.utc).isoformat()),
            )
            await db.commit()
            return fresh_data

    finally:
        await db.close()


async def get_league(league_id: str):
    url = f"{settings.sleeper_api_url}/league/{league_id}"
    return await get(url)
