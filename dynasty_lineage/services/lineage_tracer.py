"""
Lineage Tracer.

Pure functions over a TransactionGraph:

- trace_asset_path: the forward transaction path of one asset plus the
  chains of everything received for it along the way.
- build_complete_transaction_lineage: for every asset in one transaction,
  the backward path to its origin, the forward path to its present state
  and the managers who held it.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..errors import AssetNotFoundError, InvalidRequestError, TransactionNotFoundError
from ..models.lineage import (
    AssetLineage,
    AssetTimeline,
    CompleteTransactionLineage,
    DraftPickAsset,
    FutureChain,
    LineagePerspective,
    LineageStatus,
    LineageSummary,
    ManagerRef,
    OriginChain,
    OriginPoint,
    TransactionChain,
    TransactionGraph,
    TransactionNode,
)
from .traversal import (
    ORIGIN_TRANSACTION_TYPES,
    AssetValue,
    TraversalContext,
    build_manager_tenures,
    classify_origin,
    exchange_substitute,
    holder_after,
    orient_transaction,
    transaction_sort_key,
    transactions_for,
)

logger = logging.getLogger(__name__)

# Transactions whose received assets are followed as derived chains
DERIVING_TRANSACTION_TYPES = ("trade", "draft")


def trace_asset_path(graph: TransactionGraph, asset: AssetValue, context: TraversalContext = None,
                     depth: int = 0) -> TransactionChain:
    if context is None:
        context = TraversalContext()

    reason = context.check(asset.id, depth)
    if reason:
        logger.warning("Stopping trace of %s (%s) at depth %d: %s", asset.id, asset.name, depth, reason)
        return TransactionChain(root_asset=asset, truncated_reason=reason)

    context.visited_assets.add(asset.id)

    visited_transactions = set()
    transaction_path: List[TransactionNode] = []
    derived_assets: List[TransactionChain] = []
    original_owner: Optional[ManagerRef] = None
    current_owner: Optional[ManagerRef] = None
    first_holder: Optional[ManagerRef] = None

    for tx in transactions_for(graph, asset.id):
        if tx.id in visited_transactions:
            continue
        visited_transactions.add(tx.id)
        transaction_path.append(tx)

        orientation = orient_transaction(tx, asset.id)
        if original_owner is None and orientation.manager_from:
            original_owner = orientation.manager_from
        if first_holder is None and orientation.manager_to:
            first_holder = orientation.manager_to
        current_owner = orientation.manager_to

        if tx.type not in DERIVING_TRANSACTION_TYPES:
            continue

        for received in orientation.assets_received:
            if received.id == asset.id:
                continue
            derived_assets.append(trace_asset_path(graph, graph.nodes.get(received.id, received), context, depth + 1))

    return TransactionChain(
        root_asset=asset,
        total_transactions=len(transaction_path),
        seasons_spanned=len({tx.season for tx in transaction_path}),
        current_owner=current_owner,
        original_owner=original_owner or first_holder,
        transaction_path=transaction_path,
        derived_assets=derived_assets,
    )


# ---------------------------------------------------------------------------
# Point-in-time lineage
# ---------------------------------------------------------------------------

def _previous_transaction(graph: TransactionGraph, asset_id: str, before: Tuple[int, int]) -> Optional[TransactionNode]:
    earlier = [tx for tx in transactions_for(graph, asset_id) if transaction_sort_key(graph, tx) < before]
    return earlier[-1] if earlier else None


def trace_origin(graph: TransactionGraph, asset: AssetValue, target: TransactionNode,
                 max_steps: int = 500) -> Tuple[OriginChain, List[Tuple[TransactionNode, str]]]:
    """
    Walk backwards from target to the asset's origin.

    Trades are followed through what the receiving manager gave up for the
    asset. Returns the chain (oldest first) together with the (transaction,
    asset id held after it) steps used to build the timeline.
    """
    steps: List[Tuple[TransactionNode, str]] = []
    cursor_id = asset.id
    cursor_key = transaction_sort_key(graph, target)
    seen = {asset.id}

    while True:
        previous = _previous_transaction(graph, cursor_id, cursor_key)

        if previous is None:
            origin_point = _origin_without_predecessor(graph, asset, target, cursor_id, steps)
            break

        steps.append((previous, cursor_id))

        if previous.type in ORIGIN_TRANSACTION_TYPES:
            origin_point = OriginPoint(
                type=classify_origin(previous, graph.seasons),
                transaction=previous,
                manager=holder_after(previous, cursor_id),
                timestamp=previous.timestamp,
                season=previous.season,
            )
            break

        substitute = exchange_substitute(previous, cursor_id) if previous.type == "trade" else None
        if substitute is None:
            origin_point = _unknown_origin(previous, cursor_id)
            break

        if substitute.id in seen or len(steps) >= max_steps:
            logger.warning("Backward trace of %s stopped at %s: %s", asset.id, previous.id,
                           "cycle" if substitute.id in seen else "max_visited")
            origin_point = _unknown_origin(previous, cursor_id)
            break

        seen.add(substitute.id)
        cursor_id = substitute.id
        cursor_key = transaction_sort_key(graph, previous)

    steps.reverse()
    return OriginChain(transactions=[tx for tx, _ in steps], origin_point=origin_point), steps


def _unknown_origin(tx: TransactionNode, asset_id: str) -> OriginPoint:
    return OriginPoint(type="unknown", transaction=tx, manager=holder_after(tx, asset_id),
                       timestamp=tx.timestamp, season=tx.season)


def _origin_without_predecessor(graph: TransactionGraph, asset: AssetValue, target: TransactionNode,
                                cursor_id: str, steps) -> OriginPoint:
    # The target itself is the origin when nothing precedes it
    if not steps and target.type in ORIGIN_TRANSACTION_TYPES:
        return OriginPoint(type=classify_origin(target, graph.seasons), transaction=target,
                           manager=holder_after(target, cursor_id), timestamp=target.timestamp,
                           season=target.season)

    cursor = graph.nodes.get(cursor_id, asset)
    manager = cursor.original_owner if isinstance(cursor, DraftPickAsset) else None
    return OriginPoint(type="unknown", manager=manager)


def trace_future(graph: TransactionGraph, asset: AssetValue, target: TransactionNode,
                 managed_by: Optional[ManagerRef]) -> FutureChain:
    """Transactions of the asset after target and where it ended up."""
    target_key = transaction_sort_key(graph, target)
    later = [tx for tx in transactions_for(graph, asset.id) if transaction_sort_key(graph, tx) > target_key]

    node = graph.nodes.get(asset.id, asset)
    last = later[-1] if later else target
    holder = holder_after(last, asset.id)

    if isinstance(node, DraftPickAsset) and node.player_selected is not None:
        status = LineageStatus(type="draft_pick_used", current_manager=holder, transformed_to=node.player_selected)
    elif holder is None:
        status = LineageStatus(type="dropped")
    elif (managed_by is not None and holder.id != managed_by.id
          and any(tx.type == "trade" for tx in later)):
        status = LineageStatus(type="traded", current_manager=holder)
    else:
        status = LineageStatus(type="active_roster", current_manager=holder)

    return FutureChain(transactions=later, current_status=status)


def _perspective_sides(target: TransactionNode, manager: ManagerRef):
    """Asset ids the manager gave and received in target."""
    for participant in target.participants:
        if participant.manager.id == manager.id:
            return ({a.id for a in participant.assets_given}, {a.id for a in participant.assets_received})

    given, received = set(), set()
    if target.manager_from and target.manager_from.id == manager.id:
        given = {a.id for a in target.assets_given}
        received = {a.id for a in target.assets_received}
    elif target.manager_to and target.manager_to.id == manager.id:
        given = {a.id for a in target.assets_received}
        received = {a.id for a in target.assets_given}
    return given, received


def build_complete_transaction_lineage(graph: TransactionGraph, transaction_id: str, manager: ManagerRef,
                                       as_of: int) -> CompleteTransactionLineage:
    target = graph.chains.get(transaction_id)
    if target is None:
        raise TransactionNotFoundError(transaction_id)

    given_ids, received_ids = _perspective_sides(target, manager)
    if not given_ids and not received_ids:
        raise InvalidRequestError(f"Manager {manager.id} took no part in transaction {transaction_id}")

    if given_ids and received_ids:
        role = "both"
    elif given_ids:
        role = "giving"
    else:
        role = "receiving"

    asset_lineages: List[AssetLineage] = []
    origin_types: Dict[str, int] = {}

    for asset in target.all_assets:
        if asset.id in given_ids:
            side = "given"
        elif asset.id in received_ids:
            side = "received"
        else:
            # Moved between other managers
            continue

        asset = graph.nodes.get(asset.id, asset)
        managed_by = holder_after(target, asset.id)

        origin_chain, backward_steps = trace_origin(graph, asset, target)
        future_chain = trace_future(graph, asset, target, managed_by)

        events = [(int(tx.timestamp), holder_after(tx, held_id)) for tx, held_id in backward_steps]
        events.append((int(target.timestamp), managed_by))
        events.extend((int(tx.timestamp), holder_after(tx, asset.id)) for tx in future_chain.transactions)
        tenures = build_manager_tenures(events, as_of)

        asset_lineages.append(AssetLineage(
            asset=asset,
            transaction_side=side,
            managed_by=managed_by,
            origin_chain=origin_chain,
            future_chain=future_chain,
            timeline=AssetTimeline(total_days=sum(t.days_held for t in tenures), manager_tenures=tenures),
        ))

        origin_type = origin_chain.origin_point.type
        origin_types[origin_type] = origin_types.get(origin_type, 0) + 1

    summary = LineageSummary(
        total_assets_traced=len(asset_lineages),
        longest_chain_length=max(
            (len(l.origin_chain.transactions) + 1 + len(l.future_chain.transactions) for l in asset_lineages),
            default=0,
        ),
        assets_given=sum(1 for l in asset_lineages if l.transaction_side == "given"),
        assets_received=sum(1 for l in asset_lineages if l.transaction_side == "received"),
        origin_types=origin_types,
    )

    logger.info("Traced %d assets for transaction %s", len(asset_lineages), transaction_id)
    return CompleteTransactionLineage(
        target_transaction=target,
        perspective=LineagePerspective(manager=manager, role=role),
        asset_lineages=asset_lineages,
        summary=summary,
    )


def find_asset(graph: TransactionGraph, asset_id: str) -> AssetValue:
    asset = graph.nodes.get(asset_id)
    if asset is None:
        raise AssetNotFoundError(asset_id)
    return asset
