"""
Async entry points of the lineage engine.

Each operation resolves the dynasty for a league, builds a fresh
transaction graph from the store and runs one of the pure traversals on it.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

import aiosqlite
import httpx

from ..config import settings
from ..errors import (
    AssetNotFoundError,
    DraftPickNotFoundError,
    InvalidRequestError,
    LeagueNotFoundError,
    LineageError,
    ManagerNotFoundError,
)
from ..models.lineage import (
    AssetTradeTree,
    CompleteTransactionLineage,
    DynastyChain,
    ManagerAcquisitionChains,
    PlayerNetworkResponse,
    TransactionChain,
    TransactionGraph,
)
from ..store import LineageStore
from . import graph_builder, league_history, lineage_tracer, player_network, trade_tree
from .traversal import AssetValue, TraversalContext

logger = logging.getLogger(__name__)

ASSET_TYPES = ("player", "draft_pick")


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


async def get_league_history(store: LineageStore, league_id: str) -> DynastyChain:
    return await league_history.get_league_history(store, league_id)


async def build_graph(store: LineageStore, league_id: str, focus_asset: AssetValue = None) -> TransactionGraph:
    dynasty = await league_history.get_league_history(store, league_id)
    return await graph_builder.build_graph(store, dynasty.leagues, focus_asset)


async def _get_asset(store: LineageStore, asset_id: str, asset_type: str = None) -> AssetValue:
    if asset_type is not None and asset_type not in ASSET_TYPES:
        raise InvalidRequestError(f"Unknown asset type: {asset_type}")

    asset = await store.get_asset(asset_id)
    if asset is None or (asset_type is not None and asset.type != asset_type):
        raise AssetNotFoundError(asset_id)
    return asset


def _resolve_transaction_id(graph: TransactionGraph, transaction_id: str) -> str:
    # Accept Sleeper transaction ids as well as internal ones
    if transaction_id in graph.chains:
        return transaction_id
    for node in graph.chains.values():
        if node.sleeper_transaction_id == transaction_id:
            return node.id
    return transaction_id


async def build_transaction_chain(store: LineageStore, asset_id: str, asset_type: str,
                                  league_id: str) -> TransactionChain:
    logger.info("Building transaction chain for %s %s in league %s", asset_type, asset_id, league_id)
    asset = await _get_asset(store, asset_id, asset_type)
    graph = await build_graph(store, league_id, asset)

    return lineage_tracer.trace_asset_path(graph, graph.nodes.get(asset.id, asset), TraversalContext.from_settings())


async def build_complete_transaction_lineage(store: LineageStore, transaction_id: str, manager_id: str,
                                             league_id: str) -> CompleteTransactionLineage:
    logger.info("Building complete lineage for transaction %s (manager %s)", transaction_id, manager_id)
    manager = await store.get_manager(manager_id)
    if manager is None:
        raise ManagerNotFoundError(manager_id)

    graph = await build_graph(store, league_id)
    return lineage_tracer.build_complete_transaction_lineage(
        graph, _resolve_transaction_id(graph, transaction_id), manager, now_ms()
    )


async def build_asset_trade_tree(store: LineageStore, asset_id: str, starting_transaction_id: Optional[str],
                                 league_id: str) -> AssetTradeTree:
    logger.info("Building asset trade tree for %s from transaction %s", asset_id, starting_transaction_id)
    asset = await _get_asset(store, asset_id)
    graph = await build_graph(store, league_id, asset)

    if starting_transaction_id is not None:
        starting_transaction_id = _resolve_transaction_id(graph, starting_transaction_id)

    return trade_tree.resolve_asset_trade_tree(
        graph, asset.id, starting_transaction_id, as_of=now_ms(), max_depth=settings.trade_tree_max_depth,
    )


async def get_player_network(store: LineageStore, asset_id: str, league_id: str, depth: int = None,
                             season: str = None, transaction_type: str = None) -> PlayerNetworkResponse:
    if depth is None:
        depth = settings.default_network_depth
    if depth < 1 or depth > settings.max_network_depth:
        raise InvalidRequestError(f"Depth must be between 1 and {settings.max_network_depth}")

    logger.info("Building player network for %s with depth %d in league %s", asset_id, depth, league_id)
    asset = await _get_asset(store, asset_id)
    graph = await build_graph(store, league_id, asset)

    return player_network.explore_network(
        graph, asset.id, depth, season=season, transaction_type=transaction_type,
        focal_asset=graph.nodes.get(asset.id, asset),
    )


async def get_manager_acquisition_chains(store: LineageStore, manager_id: str,
                                         league_id: str) -> ManagerAcquisitionChains:
    manager = await store.get_manager(manager_id)
    if manager is None:
        raise ManagerNotFoundError(manager_id)

    league = await store.get_league(league_id)
    if league is None:
        raise LeagueNotFoundError(league_id)

    current_roster = await store.list_roster_assets(manager.id, league.id)
    semaphore = asyncio.Semaphore(settings.roster_trace_concurrency)

    async def get_player_chain(player) -> Optional[TransactionChain]:
        async with semaphore:
            try:
                return await build_transaction_chain(store, player.id, "player", league_id)
            except (LineageError, httpx.HTTPError, aiosqlite.Error) as e:
                logger.warning("Failed to build chain for player %s: %r", player.name, e)
                return None

    chains: List[Optional[TransactionChain]] = await asyncio.gather(
        *[get_player_chain(player) for player in current_roster]
    )

    return ManagerAcquisitionChains(
        manager=manager,
        current_roster=current_roster,
        acquisition_chains=[chain for chain in chains if chain is not None],
    )


async def get_draft_pick_chain(store: LineageStore, season: str, round: int, original_owner_id: str,
                               league_id: str) -> TransactionChain:
    league = await store.get_league(league_id)
    if league is None:
        raise LeagueNotFoundError(league_id)

    draft_pick = await store.find_draft_pick(league.id, season, round, original_owner_id)
    if draft_pick is None:
        raise DraftPickNotFoundError(f"{season} Round {round} by {original_owner_id}")

    return await build_transaction_chain(store, draft_pick.id, "draft_pick", league_id)
