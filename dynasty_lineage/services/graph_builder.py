"""
Graph Builder.

Loads every persisted transaction of a dynasty and turns it into a
TransactionGraph: asset nodes, an asset -> transactions adjacency index and
enriched transaction nodes. The graph is a request-scoped snapshot.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import aiosqlite

from ..errors import DataIntegrityError
from ..models.lineage import (
    DraftPickAsset,
    LeagueHistoryNode,
    ManagerRef,
    PlayerAsset,
    TradeParticipant,
    TransactionGraph,
    TransactionItemRecord,
    TransactionNode,
    TransactionRecord,
)
from ..store import LineageStore

logger = logging.getLogger(__name__)

AssetValue = Union[PlayerAsset, DraftPickAsset]


@dataclass
class GraphAccumulator:
    """Mutable indices filled season by season, frozen into a TransactionGraph at the end."""
    nodes: Dict[str, AssetValue] = field(default_factory=dict)
    edges: Dict[str, List[str]] = field(default_factory=dict)
    chains: Dict[str, TransactionNode] = field(default_factory=dict)
    ingestion_order: Dict[str, int] = field(default_factory=dict)
    pick_selections: Dict[str, List[str]] = field(default_factory=dict)

    def freeze(self, seasons: List[str], roster_holders: Dict[str, ManagerRef]) -> TransactionGraph:
        return TransactionGraph(
            nodes=self.nodes,
            edges=self.edges,
            chains=self.chains,
            ingestion_order=self.ingestion_order,
            seasons=seasons,
            pick_selections=self.pick_selections,
            roster_holders=roster_holders,
        )


def asset_from_item(item: TransactionItemRecord) -> Optional[AssetValue]:
    if item.player is not None:
        return item.player
    if item.draft_pick is not None:
        return item.draft_pick
    return None


def group_by_manager(items: Sequence[Tuple[TransactionItemRecord, AssetValue]]) -> List[TradeParticipant]:
    """Group resolved items per manager, keeping first-appearance order."""
    participants: Dict[str, TradeParticipant] = {}

    for item, asset in items:
        if item.manager is None:
            continue
        participant = participants.get(item.manager.id)
        if participant is None:
            participant = participants[item.manager.id] = TradeParticipant(manager=item.manager)
        if item.type == "add":
            participant.assets_received.append(asset)
        else:
            participant.assets_given.append(asset)

    return list(participants.values())


def _holds(assets: List[AssetValue], asset_id: str) -> bool:
    return any(a.id == asset_id for a in assets)


def resolve_trade_pair(participants: List[TradeParticipant], focus_asset_id: str = None):
    """
    Reduce a trade with any number of managers to one giving/receiving pair.

    The giver is the manager who dropped the focus asset, the receiver the
    manager who added it. Without a focus asset (or when it is not part of
    the trade) the first two manager groups in item order are used. For
    trades with three or more managers this is an approximation.

    Returns (manager_from, manager_to, assets_given, assets_received), where
    the asset lists describe what manager_from gave up and got back.
    """
    if not participants:
        return None, None, [], []

    giver = receiver = None
    if focus_asset_id:
        giver = next((p for p in participants if _holds(p.assets_given, focus_asset_id)), None)
        receiver = next((p for p in participants if _holds(p.assets_received, focus_asset_id)), None)

    if giver is None and receiver is None:
        giver = participants[0]
        receiver = participants[1] if len(participants) > 1 else None
    elif giver is None:
        giver = next((p for p in participants if p is not receiver), None)
    elif receiver is None:
        receiver = next((p for p in participants if p is not giver), None)

    if giver is None:
        # Only the receiving side is known
        return None, receiver.manager, [], []

    return (
        giver.manager,
        receiver.manager if receiver else None,
        list(giver.assets_given),
        list(giver.assets_received),
    )


def _describe(tx_type: str, manager_from: Optional[ManagerRef], manager_to: Optional[ManagerRef]) -> str:
    if tx_type == "trade" and manager_from and manager_to:
        return f"Trade between {manager_from.label} and {manager_to.label}"

    actor = manager_to or manager_from
    if actor is None:
        return f"{tx_type} transaction"
    if tx_type == "draft":
        return f"Draft selection by {actor.label}"
    return f"{tx_type} by {actor.label}"


def build_transaction_node(transaction: TransactionRecord, league_name: str, season: str,
                           focus_asset_id: str = None) -> TransactionNode:
    resolved: List[Tuple[TransactionItemRecord, AssetValue]] = []
    for item in transaction.items:
        asset = asset_from_item(item)
        if asset is None:
            raise DataIntegrityError(
                f"Transaction {transaction.id} has a {item.type} item that is neither a player nor a draft pick"
            )
        resolved.append((item, asset))

    participants = group_by_manager(resolved)

    if transaction.type == "trade":
        manager_from, manager_to, assets_given, assets_received = resolve_trade_pair(participants, focus_asset_id)
    else:
        assets_received = [asset for item, asset in resolved if item.type == "add"]
        assets_given = [asset for item, asset in resolved if item.type == "drop"]
        manager_to = next((item.manager for item, _ in resolved if item.type == "add" and item.manager), None)
        manager_from = next((item.manager for item, _ in resolved if item.type == "drop" and item.manager), None)

    return TransactionNode(
        id=transaction.id,
        sleeper_transaction_id=transaction.sleeper_transaction_id,
        type=transaction.type,
        status=transaction.status,
        week=transaction.week,
        season=season,
        league_name=league_name,
        timestamp=transaction.timestamp,
        creator=transaction.creator,
        description=_describe(transaction.type, manager_from, manager_to),
        assets_received=assets_received,
        assets_given=assets_given,
        manager_from=manager_from,
        manager_to=manager_to,
        participants=participants,
    )


def _record_pick_selection(graph: GraphAccumulator, player_id: str, pick_id: str):
    picks = graph.pick_selections.setdefault(player_id, [])
    if pick_id not in picks:
        picks.append(pick_id)


def add_season_transactions(graph: GraphAccumulator, transactions: List[TransactionRecord],
                            league_name: str, season: str, focus_asset_id: str = None) -> int:
    """Add one season's transactions to the graph. Returns the number added."""
    added = 0
    for transaction in transactions:
        if transaction.id in graph.chains:
            continue

        node = build_transaction_node(transaction, league_name, season, focus_asset_id)
        graph.chains[node.id] = node
        graph.ingestion_order[node.id] = len(graph.ingestion_order)
        added += 1

        for asset in node.all_assets:
            # Keep the richest version of a draft pick seen so far
            existing = graph.nodes.get(asset.id)
            if existing is None or (isinstance(asset, DraftPickAsset) and asset.is_consumed):
                graph.nodes[asset.id] = asset
            graph.edges.setdefault(asset.id, []).append(node.id)

            if isinstance(asset, DraftPickAsset) and asset.player_selected_id:
                _record_pick_selection(graph, asset.player_selected_id, asset.id)

        if node.type == "draft":
            picks = [a for a in node.assets_given if isinstance(a, DraftPickAsset)]
            players = [a for a in node.assets_received if isinstance(a, PlayerAsset)]
            if len(picks) == 1 and len(players) == 1:
                _record_pick_selection(graph, players[0].id, picks[0].id)

    return added


async def build_graph(store: LineageStore, seasons: List[LeagueHistoryNode],
                      focus_asset: AssetValue = None) -> TransactionGraph:
    """
    Build the transaction graph for a dynasty, oldest season first.

    Seasons that are not persisted are skipped. A season whose transactions
    cannot be loaded contributes nothing; the rest of the build goes on.
    """
    graph = GraphAccumulator()
    focus_asset_id = focus_asset.id if focus_asset else None
    persisted_league_ids: List[str] = []

    for league in seasons:
        if not league.in_database or not league.league_id:
            continue
        persisted_league_ids.append(league.league_id)

        try:
            transactions = await store.list_transactions([league.league_id])
        except aiosqlite.Error as e:
            logger.warning("Skipping season %s (%s): %r", league.season, league.league_id, e)
            continue

        added = add_season_transactions(graph, transactions, league.name, league.season, focus_asset_id)
        logger.debug("Season %s: %d transactions", league.season, added)

    try:
        roster_holders = await store.list_roster_holders(persisted_league_ids)
    except aiosqlite.Error as e:
        logger.warning("Could not load roster holders: %r", e)
        roster_holders = {}

    logger.info(
        "Built transaction graph: %d assets, %d transactions across %d seasons",
        len(graph.nodes), len(graph.chains), len(persisted_league_ids),
    )
    return graph.freeze([league.season for league in seasons], roster_holders)
