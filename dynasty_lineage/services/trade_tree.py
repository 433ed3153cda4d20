import logging
from typing import List, Optional, Set

from ..errors import InvalidRequestError, TransactionNotFoundError
from ..models.lineage import (
    AssetTradeTree,
    CurrentStatus,
    FinalTrade,
    HistoryEvent,
    PlayerAsset,
    TradePackage,
    TradeTreeOrigin,
    TradeTreeTimeline,
    TransactionGraph,
    TransactionNode,
)
from .lineage_tracer import find_asset
from .traversal import (
    AssetValue,
    build_manager_tenures,
    classify_origin,
    holder_after,
    orient_transaction,
    transaction_sort_key,
    transactions_for,
)

logger = logging.getLogger(__name__)

DEEP_RECURSION_MARKER = "Deep recursion prevented"


def describe_package(assets: List[AssetValue]) -> str:
    names = [asset.name for asset in assets]
    if not names:
        return "Nothing received"
    if len(names) == 1:
        return names[0]
    return f"{len(names)}-asset package: {', '.join(names[:2])}{'...' if len(names) > 2 else ''}"


def _history_event(tx: TransactionNode, asset_id: str, is_start: bool) -> HistoryEvent:
    orientation = orient_transaction(tx, asset_id)

    if orientation.manager_to is None:
        action = "dropped"
    elif tx.type == "trade" and orientation.manager_from is not None and not is_start:
        action = "traded_away"
    else:
        action = "acquired"

    return HistoryEvent(transaction=tx, action=action,
                        from_manager=orientation.manager_from, to_manager=orientation.manager_to)


def _find_final_trade(graph: TransactionGraph, asset_id: str, start: TransactionNode) -> Optional[TransactionNode]:
    start_key = transaction_sort_key(graph, start)
    trades = [tx for tx in transactions_for(graph, asset_id)
              if tx.type == "trade" and transaction_sort_key(graph, tx) > start_key]
    return trades[-1] if trades else None


def resolve_current_status(graph: TransactionGraph, asset: AssetValue, final_trade: Optional[TransactionNode],
                           as_of: int) -> CurrentStatus:
    if isinstance(asset, PlayerAsset):
        holder = graph.roster_holders.get(asset.id)
        if holder is not None:
            return CurrentStatus(type="on_roster", current_manager=holder, as_of_date=as_of)
        return CurrentStatus(type="dropped", as_of_date=as_of)

    if asset.player_selected is not None:
        return CurrentStatus(type="drafted_as_player", transformed_to=asset.player_selected, as_of_date=as_of)
    if asset.current_owner is not None:
        return CurrentStatus(type="on_roster", current_manager=asset.current_owner, as_of_date=as_of)
    if final_trade is not None:
        return CurrentStatus(type="traded_away", current_manager=holder_after(final_trade, asset.id), as_of_date=as_of)
    return CurrentStatus(type="dropped", as_of_date=as_of)


def _build_trade_package(graph: TransactionGraph, asset: AssetValue, trade: TransactionNode, as_of: int,
                         visited: Set[str], depth: int, max_depth: int) -> TradePackage:
    if depth > max_depth:
        logger.warning("Maximum trade tree depth reached for asset %s", asset.id)
        return TradePackage(total_value=DEEP_RECURSION_MARKER, truncated=True)

    orientation = orient_transaction(trade, asset.id)
    if orientation.manager_from is None:
        return TradePackage(total_value="No trading manager found")

    subtrees: List[AssetTradeTree] = []
    for received in orientation.assets_received:
        if received.id in visited:
            logger.warning("Circular reference detected for asset %s", received.id)
            continue
        subtrees.append(resolve_asset_trade_tree(graph, received.id, trade.id, as_of, visited, depth + 1, max_depth))

    return TradePackage(assets_received=subtrees, total_value=describe_package(orientation.assets_received))


def resolve_asset_trade_tree(graph: TransactionGraph, asset_id: str, starting_transaction_id: str = None,
                             as_of: int = 0, visited: Set[str] = None, depth: int = 0,
                             max_depth: int = 10) -> AssetTradeTree:
    """
    What an asset was eventually traded for, recursively.

    The tree starts at starting_transaction_id (the asset's first
    transaction when omitted). An asset may appear again in a sibling
    branch but never below itself.
    """
    asset = find_asset(graph, asset_id)
    history = transactions_for(graph, asset_id)

    if starting_transaction_id is None:
        if not history:
            raise InvalidRequestError(f"Asset {asset_id} has no transactions")
        start = history[0]
    else:
        start = graph.chains.get(starting_transaction_id)
        if start is None:
            raise TransactionNotFoundError(starting_transaction_id)
        if depth == 0 and all(tx.id != start.id for tx in history):
            raise InvalidRequestError(f"Asset {asset_id} is not part of transaction {starting_transaction_id}")

    if visited is None:
        visited = set()
    visited.add(asset_id)
    try:
        start_key = transaction_sort_key(graph, start)
        before = [tx for tx in history if transaction_sort_key(graph, tx) < start_key]
        origin_tx = before[0] if before else start

        origin = TradeTreeOrigin(
            transaction=origin_tx,
            type=classify_origin(origin_tx, graph.seasons),
            original_manager=holder_after(origin_tx, asset_id),
            date=origin_tx.timestamp,
        )

        events = [_history_event(tx, asset_id, tx.id == start.id) for tx in history]
        tenures = build_manager_tenures(
            [(int(event.transaction.timestamp), event.to_manager) for event in events], as_of
        )

        final_trade = None
        final_tx = _find_final_trade(graph, asset_id, start)
        if final_tx is not None:
            final_trade = FinalTrade(
                transaction=final_tx,
                trade_package=_build_trade_package(graph, asset, final_tx, as_of, visited, depth, max_depth),
            )

        return AssetTradeTree(
            asset=asset,
            origin=origin,
            chronological_history=events,
            final_trade=final_trade,
            current_status=resolve_current_status(graph, asset, final_tx, as_of),
            timeline=TradeTreeTimeline(
                total_days_tracked=sum(t.days_held for t in tenures),
                manager_tenures=tenures,
            ),
        )
    finally:
        visited.discard(asset_id)
