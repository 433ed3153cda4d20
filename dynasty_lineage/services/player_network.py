import logging
import time
from collections import deque
from typing import Dict, List, Optional

from ..models.lineage import (
    NetworkConnection,
    NetworkNode,
    PlayerAsset,
    PlayerNetwork,
    PlayerNetworkResponse,
    PlayerNetworkStats,
    TransactionGraph,
    TransactionNode,
)
from .lineage_tracer import find_asset
from .traversal import AssetValue, transaction_sort_key, transactions_for

logger = logging.getLogger(__name__)


def calculate_importance(asset: AssetValue, depth: int, max_depth: int) -> float:
    """Decays linearly with depth; draft picks count 20% less than players."""
    base_importance = 1.0 - (depth / (max_depth + 1))
    type_multiplier = 1.0 if isinstance(asset, PlayerAsset) else 0.8
    return max(0.1, base_importance * type_multiplier)


def network_transactions(graph: TransactionGraph, asset_id: str, season: Optional[str] = None,
                         transaction_type: Optional[str] = None) -> List[TransactionNode]:
    """An asset's transactions, counting those of the picks used to draft a player."""
    transactions = {tx.id: tx for tx in transactions_for(graph, asset_id)}
    for pick_id in graph.pick_selections.get(asset_id, []):
        for tx in transactions_for(graph, pick_id):
            transactions.setdefault(tx.id, tx)

    result = [
        tx for tx in transactions.values()
        if (season is None or tx.season == season)
        and (transaction_type is None or tx.type == transaction_type)
    ]
    return sorted(result, key=lambda tx: transaction_sort_key(graph, tx))


def _calculate_stats(network: PlayerNetwork, build_time_ms: int) -> PlayerNetworkStats:
    depth_distribution: Dict[int, int] = {}
    transaction_types: Dict[str, int] = {}

    for node in network.nodes:
        depth_distribution[node.depth] = depth_distribution.get(node.depth, 0) + 1
    for tx in network.transactions:
        transaction_types[tx.type] = transaction_types.get(tx.type, 0) + 1

    return PlayerNetworkStats(
        total_nodes=len(network.nodes),
        total_transactions=len(network.transactions),
        depth_distribution=depth_distribution,
        transaction_types=transaction_types,
        build_time_ms=build_time_ms,
    )


def explore_network(graph: TransactionGraph, asset_id: str, depth: int = 2, season: Optional[str] = None,
                    transaction_type: Optional[str] = None,
                    focal_asset: AssetValue = None) -> PlayerNetworkResponse:
    """
    Breadth-first ego-network around one asset.

    Every asset sharing a transaction with a node at depth d is admitted at
    depth d + 1 as long as that stays within depth. Nodes at the outermost
    depth are not expanded.
    """
    started = time.perf_counter()
    if focal_asset is None:
        focal_asset = find_asset(graph, asset_id)

    nodes: Dict[str, NetworkNode] = {
        focal_asset.id: NetworkNode(asset=focal_asset, depth=0, importance=1.0),
    }
    transactions: Dict[str, TransactionNode] = {}
    connections: List[NetworkConnection] = []
    visited = set()
    queue = deque([(focal_asset.id, 0)])

    while queue:
        current_id, current_depth = queue.popleft()
        if current_id in visited or current_depth >= depth:
            continue
        visited.add(current_id)

        next_depth = current_depth + 1
        for tx in network_transactions(graph, current_id, season, transaction_type):
            transactions.setdefault(tx.id, tx)

            for asset in tx.all_assets:
                if asset.id == current_id or asset.id in nodes:
                    continue
                asset = graph.nodes.get(asset.id, asset)
                nodes[asset.id] = NetworkNode(asset=asset, depth=next_depth,
                                              importance=calculate_importance(asset, next_depth, depth))
                queue.append((asset.id, next_depth))
                connections.append(NetworkConnection(from_asset=current_id, to_asset=asset.id,
                                                     transaction_id=tx.id, depth=next_depth))

    network = PlayerNetwork(
        nodes=list(nodes.values()),
        transactions=sorted(transactions.values(), key=lambda tx: transaction_sort_key(graph, tx)),
        connections=connections,
    )
    build_time_ms = int((time.perf_counter() - started) * 1000)
    logger.info("Player network for %s: %d nodes, %d transactions (depth %d)",
                asset_id, len(network.nodes), len(network.transactions), depth)

    return PlayerNetworkResponse(focal_asset=focal_asset, network=network,
                                 stats=_calculate_stats(network, build_time_ms))
