"""Plain-text renderings of asset trade trees."""

from datetime import datetime, timezone
from typing import List

from ..models.lineage import AssetTradeTree, DraftPickAsset, TradeTreeOrigin
from .traversal import AssetValue

ORIGIN_LABELS = {
    "startup_draft": "Startup Draft {year} by {manager}",
    "rookie_draft": "Drafted {year} by {manager}",
    "waiver": "Waiver pickup {year} by {manager}",
    "free_agent": "Free agent pickup {year} by {manager}",
}


def format_origin(origin: TradeTreeOrigin) -> str:
    manager = origin.original_manager.label if origin.original_manager else "unknown manager"
    year = datetime.fromtimestamp(origin.date / 1000, tz=timezone.utc).year
    template = ORIGIN_LABELS.get(origin.type, "Acquired {year} by {manager}")
    return template.format(year=year, manager=manager)


def _traded_for(tree: AssetTradeTree) -> List[AssetTradeTree]:
    if tree.final_trade is None:
        return []
    return tree.final_trade.trade_package.assets_received


def _asset_with_context(tree: AssetTradeTree) -> str:
    line = tree.asset.name
    status = tree.current_status
    original_manager = tree.origin.original_manager

    if (isinstance(tree.asset, DraftPickAsset) and status.current_manager
            and (original_manager is None or status.current_manager.id != original_manager.id)):
        line = f"{status.current_manager.label}'s {tree.asset.name}"

    if status.type == "drafted_as_player" and status.transformed_to:
        line += f" → Selected {status.transformed_to.name}"
    return line


def _terminal_status(tree: AssetTradeTree, prefix: str):
    status = tree.current_status
    if status.type == "on_roster" and status.current_manager:
        return f"{prefix}└── Currently on {status.current_manager.label}'s roster"
    if status.type == "dropped":
        return f"{prefix}└── Dropped from league"
    if status.type == "drafted_as_player" and status.transformed_to:
        return f"{prefix}└── Became {status.transformed_to.name}"
    if status.type == "traded_away" and status.current_manager:
        return f"{prefix}└── Traded to {status.current_manager.label}"
    return None


def _format_branches(received: List[AssetTradeTree], lines: List[str], prefix: str):
    for index, subtree in enumerate(received):
        is_last = index == len(received) - 1
        lines.append(prefix + ("└── " if is_last else "├── ") + _asset_with_context(subtree))
        next_prefix = prefix + ("    " if is_last else "│   ")

        if _traded_for(subtree):
            lines.append(next_prefix + "└── Traded for:")
            _format_branches(_traded_for(subtree), lines, next_prefix + "    ")
        elif subtree.final_trade and subtree.final_trade.trade_package.truncated:
            lines.append(f"{next_prefix}└── {subtree.final_trade.trade_package.total_value}")
        else:
            status_line = _terminal_status(subtree, next_prefix)
            if status_line:
                lines.append(status_line)


def format_asset_tree(tree: AssetTradeTree, show_details: bool = True) -> str:
    """Render a trade tree as an ASCII tree."""
    root = tree.asset.name
    if show_details and tree.origin.type != "unknown":
        root += f" ({format_origin(tree.origin)})"
    lines = [root]

    if show_details and tree.chronological_history:
        lines.append(f"│   Timeline: {len(tree.chronological_history)} transactions "
                     f"over {tree.timeline.total_days_tracked} days")

    status = tree.current_status
    if _traded_for(tree):
        lines.append("├── Traded for:")
        _format_branches(_traded_for(tree), lines, "│   ")
    elif tree.final_trade and tree.final_trade.trade_package.truncated:
        lines.append(f"└── {tree.final_trade.trade_package.total_value}")
    elif status.type == "on_roster" and status.current_manager:
        lines.append(f"└── Currently on {status.current_manager.label}'s roster")
    elif status.type == "drafted_as_player" and status.transformed_to:
        lines.append(f"└── Used to draft {status.transformed_to.name}")
    elif status.type == "dropped":
        lines.append("└── Dropped from league")

    return "\n".join(lines)


def format_asset_list(assets: List[AssetValue]) -> str:
    formatted = []
    for asset in assets:
        if isinstance(asset, DraftPickAsset):
            formatted.append(f"{asset.season} Round {asset.round} Pick")
        else:
            formatted.append(f"{asset.name} ({asset.position or 'N/A'})")
    return ", ".join(formatted)


def format_tree_summary(tree: AssetTradeTree) -> str:
    lines = [
        f"{tree.asset.name}:",
        f"  • Origin: {format_origin(tree.origin)}",
        f"  • Transactions: {len(tree.chronological_history)}",
        f"  • Days tracked: {tree.timeline.total_days_tracked}",
    ]

    if tree.final_trade:
        lines.append(f"  • Final trade: {tree.final_trade.trade_package.total_value}")
        lines.append(f"  • Branching assets: {len(tree.final_trade.trade_package.assets_received)}")

    lines.append(f"  • Status: {tree.current_status.type}")
    return "\n".join(lines)
