"""
Traversal primitives shared by the lineage tracer, the trade-tree resolver
and the network explorer.

The two-manager orientation of a transaction and the backward substitution
rule are approximations for multi-party trades and multi-asset packages.
They live here as named policies so the traversals never inline them.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, NamedTuple, Optional, Set, Tuple, Union

from ..config import settings
from ..models.lineage import (
    DraftPickAsset,
    ManagerRef,
    ManagerTenure,
    PlayerAsset,
    TradeParticipant,
    TransactionGraph,
    TransactionNode,
)

logger = logging.getLogger(__name__)

AssetValue = Union[PlayerAsset, DraftPickAsset]

MS_PER_DAY = 24 * 60 * 60 * 1000
ORIGIN_TRANSACTION_TYPES = ("draft", "waiver", "free_agent", "commissioner")


@dataclass
class TraversalContext:
    """Guard state for one top-level trace. Never shared between calls."""
    max_depth: int = 10
    max_visited: int = 500
    visited_assets: Set[str] = field(default_factory=set)

    @classmethod
    def from_settings(cls) -> "TraversalContext":
        return cls(max_depth=settings.max_trace_depth, max_visited=settings.max_visited_assets)

    def check(self, asset_id: str, depth: int) -> Optional[str]:
        """Return the reason this branch must stop, or None to continue."""
        if asset_id in self.visited_assets:
            return "cycle"
        if depth > self.max_depth:
            return "max_depth"
        if len(self.visited_assets) >= self.max_visited:
            return "max_visited"
        return None


class Orientation(NamedTuple):
    manager_from: Optional[ManagerRef]
    manager_to: Optional[ManagerRef]
    assets_given: List[AssetValue]
    assets_received: List[AssetValue]


def transaction_sort_key(graph: TransactionGraph, tx: TransactionNode) -> Tuple[int, int]:
    return int(tx.timestamp), graph.ingestion_order.get(tx.id, 0)


def transactions_for(graph: TransactionGraph, asset_id: str) -> List[TransactionNode]:
    """Transactions touching an asset, oldest first, ties in ingestion order."""
    seen = set()
    transactions = []
    for tx_id in graph.edges.get(asset_id, []):
        if tx_id in seen or tx_id not in graph.chains:
            continue
        seen.add(tx_id)
        transactions.append(graph.chains[tx_id])
    return sorted(transactions, key=lambda tx: transaction_sort_key(graph, tx))


def _find_participant(participants: Iterable[TradeParticipant], asset_id: str,
                      side: str) -> Optional[TradeParticipant]:
    for participant in participants:
        if any(a.id == asset_id for a in getattr(participant, side)):
            return participant
    return None


def orient_transaction(tx: TransactionNode, asset_id: str) -> Orientation:
    """
    From/to managers for one asset in one transaction.

    manager_from dropped the asset and manager_to added it; the asset lists
    describe what manager_from gave up and got back. Falls back to the
    transaction's own two-manager pair when the participants do not mention
    the asset.
    """
    giver = _find_participant(tx.participants, asset_id, "assets_given")
    taker = _find_participant(tx.participants, asset_id, "assets_received")

    if giver is None and taker is None:
        return Orientation(tx.manager_from, tx.manager_to, list(tx.assets_given), list(tx.assets_received))

    if giver is None:
        return Orientation(None, taker.manager, [], [])

    manager_to = taker.manager if taker else None
    if taker is None and tx.type == "trade":
        # Partial trade data: the other side is the first other manager
        other = next((p for p in tx.participants if p is not giver), None)
        manager_to = other.manager if other else None

    received = [a for a in giver.assets_received if a.id != asset_id]
    return Orientation(giver.manager, manager_to, list(giver.assets_given), received)


def holder_after(tx: TransactionNode, asset_id: str) -> Optional[ManagerRef]:
    """Manager holding the asset once tx completes; None when it was dropped."""
    return orient_transaction(tx, asset_id).manager_to


def _substitute_rank(asset: AssetValue):
    return (0 if isinstance(asset, PlayerAsset) else 1, asset.id)


def exchange_substitute(tx: TransactionNode, asset_id: str) -> Optional[AssetValue]:
    """
    What the receiving manager gave up to get asset_id in a trade.

    When several assets were given, players come before draft picks and
    ties are broken by asset id, so the choice never depends on item order.
    """
    taker = _find_participant(tx.participants, asset_id, "assets_received")
    if taker is not None:
        candidates = [a for a in taker.assets_given if a.id != asset_id]
    else:
        candidates = [a for a in tx.assets_given if a.id != asset_id]

    if not candidates:
        return None
    return sorted(candidates, key=_substitute_rank)[0]


def classify_origin(tx: Optional[TransactionNode], seasons: List[str]) -> str:
    if tx is None:
        return "unknown"
    if tx.type == "draft":
        oldest_season = min(seasons) if seasons else tx.season
        return "startup_draft" if tx.season == oldest_season else "rookie_draft"
    if tx.type in ORIGIN_TRANSACTION_TYPES:
        return tx.type
    return "unknown"


def days_between(start: int, end: int) -> int:
    return max(0, math.ceil((end - start) / MS_PER_DAY))


def build_manager_tenures(events: Iterable[Tuple[int, Optional[ManagerRef]]], as_of: int) -> List[ManagerTenure]:
    """
    Contiguous holding periods from (timestamp, holder after the event) pairs.

    A tenure closes whenever the holder changes; a None holder means the
    asset was dropped and nobody holds it until the next event. The last
    tenure stays open and is measured up to as_of.
    """
    tenures: List[ManagerTenure] = []
    current: Optional[ManagerRef] = None
    start = None

    for timestamp, holder in events:
        if current is not None and (holder is None or holder.id != current.id):
            tenures.append(ManagerTenure(manager=current, start_date=start, end_date=timestamp,
                                         days_held=days_between(start, timestamp)))
            current = None

        if holder is not None and current is None:
            current = holder
            start = timestamp

    if current is not None:
        tenures.append(ManagerTenure(manager=current, start_date=start, end_date=None,
                                     days_held=days_between(start, as_of)))

    return tenures
