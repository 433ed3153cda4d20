import logging
from typing import List, Optional

import httpx

from .. import client
from ..config import settings
from ..errors import LeagueNotFoundError
from ..models.lineage import BrokenChain, DynastyChain, LeagueHistoryNode
from ..store import LineageStore

logger = logging.getLogger(__name__)


async def _get_league_node(store: LineageStore, league_id: str) -> Optional[LeagueHistoryNode]:
    # Try the store first
    league = await store.get_league(league_id)
    if league:
        return LeagueHistoryNode(
            league_id=league.id,
            sleeper_league_id=league.sleeper_league_id,
            name=league.name,
            season=league.season,
            season_type=league.season_type,
            status=league.status,
            total_rosters=league.total_rosters,
            sleeper_previous_league_id=league.previous_league_id,
            in_database=True,
        )

    if not settings.sleeper_fallback_enabled:
        return None

    # Fallback to the Sleeper API
    league_data = await client.get_league(league_id)
    if not league_data:
        return None

    return LeagueHistoryNode(
        league_id=None,
        sleeper_league_id=league_id,
        name=league_data.get("name") or league_id,
        season=str(league_data.get("season") or ""),
        season_type=league_data.get("season_type") or "regular",
        status=league_data.get("status"),
        total_rosters=league_data.get("total_rosters") or 0,
        sleeper_previous_league_id=league_data.get("previous_league_id"),
        in_database=False,
    )


def _find_gaps(leagues: List[LeagueHistoryNode]):
    missing_seasons: List[str] = []
    broken_chains: List[BrokenChain] = []

    for older, newer in zip(leagues, leagues[1:]):
        try:
            older_year, newer_year = int(older.season), int(newer.season)
        except ValueError:
            continue

        if newer_year - older_year > 1:
            missing_seasons.extend(str(year) for year in range(older_year + 1, newer_year))
            broken_chains.append(BrokenChain(before_season=older.season, after_season=newer.season))

    return missing_seasons, broken_chains


async def get_league_history(store: LineageStore, league_id: str) -> DynastyChain:
    """
    Walk the previous-league links backwards from league_id and return the
    seasons of one dynasty, oldest first.
    """
    leagues: List[LeagueHistoryNode] = []
    visited_ids = set()
    current_id = league_id

    while current_id and current_id not in visited_ids:
        visited_ids.add(current_id)

        try:
            node = await _get_league_node(store, current_id)
        except httpx.HTTPError as e:
            logger.warning("Failed to get league data for %s: %r", current_id, e)
            break

        if node is None:
            break

        leagues.insert(0, node)
        visited_ids.add(node.sleeper_league_id)
        current_id = node.sleeper_previous_league_id

    if not leagues:
        raise LeagueNotFoundError(league_id)

    missing_seasons, broken_chains = _find_gaps(leagues)
    if broken_chains:
        logger.info("League %s history has gaps: %s", league_id, ", ".join(missing_seasons))

    return DynastyChain(
        total_seasons=len(leagues),
        leagues=leagues,
        current_league=leagues[-1],
        oldest_league=leagues[0],
        missing_seasons=missing_seasons,
        broken_chains=broken_chains,
    )
