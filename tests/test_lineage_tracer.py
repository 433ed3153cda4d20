import time

import pytest

from dynasty_lineage.errors import InvalidRequestError, TransactionNotFoundError
from dynasty_lineage.services.lineage_tracer import build_complete_transaction_lineage, trace_asset_path
from dynasty_lineage.services.traversal import (
    TraversalContext,
    build_manager_tenures,
    classify_origin,
    exchange_substitute,
    orient_transaction,
)

from factories import (
    ALICE,
    ALICE_2023_FIRST,
    BOB,
    CAROL,
    DAY_MS,
    T3_TRADE,
    XAVIER,
    YATES,
    ZEKE,
    add,
    drop,
    make_graph,
    pick,
    player,
    swap,
    transaction,
)


def _all_chains(chain):
    yield chain
    for derived in chain.derived_assets:
        yield from _all_chains(derived)


def test_example_scenario(graph):
    chain = trace_asset_path(graph, XAVIER)

    assert [tx.id for tx in chain.transaction_path] == ["t1", "t2"]
    assert chain.original_owner == ALICE
    assert chain.current_owner == BOB
    assert [d.root_asset.id for d in chain.derived_assets] == [YATES.id]


def test_derived_chains_follow_later_trades(graph):
    chain = trace_asset_path(graph, XAVIER)
    yates_chain = chain.derived_assets[0]

    assert [tx.id for tx in yates_chain.transaction_path] == ["t2", "t3"]
    derived_ids = [d.root_asset.id for d in yates_chain.derived_assets]
    assert derived_ids == [XAVIER.id, ZEKE.id]
    assert yates_chain.derived_assets[0].truncated_reason == "cycle"
    assert yates_chain.derived_assets[1].truncated_reason is None


def test_draft_pick_becomes_player(graph):
    chain = trace_asset_path(graph, ALICE_2023_FIRST)

    assert [tx.id for tx in chain.transaction_path] == ["t1"]
    assert chain.original_owner == ALICE
    assert chain.current_owner is None
    assert chain.derived_assets[0].root_asset.id == XAVIER.id


def test_multi_season_chain_spans_two_seasons(graph):
    chain = trace_asset_path(graph, YATES)

    assert chain.seasons_spanned == 2
    assert chain.original_owner == BOB
    assert chain.current_owner == CAROL


def test_cycle_terminates():
    a, b = player("a"), player("b")
    graph = make_graph([("2023", [
        transaction("t1", "trade", 1000, swap(ALICE, a, BOB, b)),
        transaction("t2", "trade", 2000, swap(ALICE, b, BOB, a)),
    ])])

    started = time.monotonic()
    chain = trace_asset_path(graph, a)

    assert time.monotonic() - started < 2
    assert [tx.id for tx in chain.transaction_path] == ["t1", "t2"]
    assert all(len(c.transaction_path) <= 2 for c in _all_chains(chain))
    assert {c.truncated_reason for c in _all_chains(chain)} == {None, "cycle"}


def test_duplicate_timestamps_keep_ingestion_order():
    a, b, c = player("a"), player("b"), player("c")
    graph = make_graph([("2023", [
        transaction("late", "trade", 5000, swap(BOB, a, CAROL, c)),
        transaction("first", "trade", 1000, swap(ALICE, a, BOB, b)),
        transaction("tie", "waiver", 5000, [drop(CAROL, a)]),
    ])])

    chain = trace_asset_path(graph, a)
    timestamps = [int(tx.timestamp) for tx in chain.transaction_path]

    assert timestamps == sorted(timestamps)
    assert [tx.id for tx in chain.transaction_path] == ["first", "late", "tie"]
    assert chain.current_owner is None


def _trade_ladder(length):
    assets = [player(f"a{i}") for i in range(length + 1)]
    transactions = [
        transaction(f"t{i}", "trade", 1000 * (i + 1), swap(ALICE, assets[i], BOB, assets[i + 1]))
        for i in range(length)
    ]
    # Alice trades each asset away for the next one
    return assets, make_graph([("2023", transactions)])


def test_depth_guard_truncates_branch():
    assets, graph = _trade_ladder(6)

    chain = trace_asset_path(graph, assets[0], TraversalContext(max_depth=2))

    reasons = {c.truncated_reason for c in _all_chains(chain)}
    assert "max_depth" in reasons
    assert all(c.total_transactions == 0 for c in _all_chains(chain) if c.truncated_reason)


def test_visited_guard_truncates_branch():
    assets, graph = _trade_ladder(6)

    context = TraversalContext(max_visited=3)
    chain = trace_asset_path(graph, assets[0], context)

    assert len(context.visited_assets) == 3
    assert "max_visited" in {c.truncated_reason for c in _all_chains(chain)}


def test_orient_transaction_per_asset(graph):
    trade = graph.chains["t2"]

    xavier = orient_transaction(trade, XAVIER.id)
    yates = orient_transaction(trade, YATES.id)

    assert (xavier.manager_from, xavier.manager_to) == (ALICE, BOB)
    assert [a.id for a in xavier.assets_received] == [YATES.id]
    assert (yates.manager_from, yates.manager_to) == (BOB, ALICE)
    assert [a.id for a in yates.assets_received] == [XAVIER.id]


def test_exchange_substitute_prefers_players_then_id():
    later_pick = pick("pick-2025-1-m2", "2025", 1, BOB)
    items = [
        drop(ALICE, YATES), add(BOB, YATES),
        drop(BOB, later_pick), add(ALICE, later_pick),
        drop(BOB, player("pk")), add(ALICE, player("pk")),
        drop(BOB, player("pb")), add(ALICE, player("pb")),
    ]
    graph = make_graph([("2024", [transaction("t1", "trade", 1, items)])])

    assert exchange_substitute(graph.chains["t1"], YATES.id).id == "pb"


def test_classify_origin(graph):
    assert classify_origin(graph.chains["t1"], graph.seasons) == "startup_draft"
    assert classify_origin(graph.chains["t4"], graph.seasons) == "waiver"
    assert classify_origin(graph.chains["t3"], graph.seasons) == "unknown"
    assert classify_origin(None, graph.seasons) == "unknown"

    rookie_draft = make_graph([
        ("2023", []),
        ("2024", [transaction("d1", "draft", 1, [add(ALICE, player("rook"))], league_id="league-2024")]),
    ])
    assert classify_origin(rookie_draft.chains["d1"], rookie_draft.seasons) == "rookie_draft"


def test_only_draft_transaction_never_classifies_unknown():
    rookie = player("rook")
    graph = make_graph([("2023", []), ("2024", [transaction("d1", "draft", 1, [add(ALICE, rookie)])])])

    lineage = build_complete_transaction_lineage(graph, "d1", ALICE, as_of=2)

    assert lineage.asset_lineages[0].origin_chain.origin_point.type == "rookie_draft"


def test_manager_tenures():
    tenures = build_manager_tenures(
        [(0, ALICE), (DAY_MS, ALICE), (3 * DAY_MS, BOB), (5 * DAY_MS, None), (6 * DAY_MS, CAROL)],
        as_of=6 * DAY_MS + DAY_MS // 2,
    )

    assert [(t.manager.id, t.days_held) for t in tenures] == [("m1", 3), ("m2", 2), ("m3", 1)]
    assert tenures[-1].end_date is None
    assert tenures[0].end_date == 3 * DAY_MS


def test_complete_lineage_for_two_sided_trade(graph):
    lineage = build_complete_transaction_lineage(graph, "t3", ALICE, as_of=T3_TRADE + 10 * DAY_MS)

    assert lineage.perspective.role == "both"
    by_asset = {l.asset.id: l for l in lineage.asset_lineages}
    assert set(by_asset) == {YATES.id, ZEKE.id}

    yates = by_asset[YATES.id]
    assert yates.transaction_side == "given"
    assert yates.managed_by == CAROL
    assert [tx.id for tx in yates.origin_chain.transactions] == ["t1", "t2"]
    assert yates.origin_chain.origin_point.type == "startup_draft"
    assert yates.origin_chain.origin_point.manager == ALICE
    assert yates.future_chain.current_status.type == "active_roster"
    assert [t.manager.id for t in yates.timeline.manager_tenures] == ["m1", "m3"]
    assert yates.timeline.manager_tenures[-1].days_held == 10

    zeke = by_asset[ZEKE.id]
    assert zeke.transaction_side == "received"
    assert zeke.origin_chain.origin_point.type == "unknown"

    assert lineage.summary.total_assets_traced == 2
    assert lineage.summary.assets_given == 1
    assert lineage.summary.assets_received == 1
    assert lineage.summary.longest_chain_length == 3
    assert lineage.summary.origin_types == {"startup_draft": 1, "unknown": 1}


def test_future_chain_reports_trades_and_picks(graph):
    lineage = build_complete_transaction_lineage(graph, "t1", ALICE, as_of=T3_TRADE)
    by_asset = {l.asset.id: l for l in lineage.asset_lineages}

    assert lineage.perspective.role == "both"
    xavier_status = by_asset[XAVIER.id].future_chain.current_status
    assert xavier_status.type == "traded"
    assert xavier_status.current_manager == BOB
    assert [tx.id for tx in by_asset[XAVIER.id].future_chain.transactions] == ["t2"]

    pick_status = by_asset[ALICE_2023_FIRST.id].future_chain.current_status
    assert pick_status.type == "draft_pick_used"
    assert pick_status.transformed_to.id == XAVIER.id


def test_future_chain_reports_drops():
    graph = make_graph([("2023", [
        transaction("w1", "waiver", 1, [add(ALICE, YATES)]),
        transaction("w2", "free_agent", 2, [drop(ALICE, YATES)]),
    ])])

    lineage = build_complete_transaction_lineage(graph, "w1", ALICE, as_of=3)

    assert lineage.perspective.role == "receiving"
    assert lineage.asset_lineages[0].future_chain.current_status.type == "dropped"
    assert lineage.asset_lineages[0].origin_chain.origin_point.type == "waiver"


def test_three_party_lineage_only_covers_own_assets():
    x, y, z = player("x"), player("y"), player("z")
    # Alice -> Bob: x, Bob -> Carol: y, Carol -> Alice: z
    items = [drop(ALICE, x), add(BOB, x), drop(BOB, y), add(CAROL, y), drop(CAROL, z), add(ALICE, z)]
    graph = make_graph([("2023", [transaction("t9", "trade", 1, items)])])

    lineage = build_complete_transaction_lineage(graph, "t9", CAROL, as_of=2)

    sides = {l.asset.id: l.transaction_side for l in lineage.asset_lineages}
    assert sides == {"y": "received", "z": "given"}
    assert lineage.summary.total_assets_traced == 2
    assert lineage.summary.assets_given == 1
    assert lineage.summary.assets_received == 1


def test_manager_outside_transaction_is_rejected(graph):
    with pytest.raises(InvalidRequestError):
        build_complete_transaction_lineage(graph, "t3", BOB, as_of=0)


def test_unknown_transaction(graph):
    with pytest.raises(TransactionNotFoundError):
        build_complete_transaction_lineage(graph, "nope", ALICE, as_of=0)


def test_timestamps_serialize_as_strings(graph):
    data = trace_asset_path(graph, XAVIER).model_dump(mode="json")

    assert data["transaction_path"][0]["timestamp"] == "1683000000000"
    assert data["root_asset"]["type"] == "player"
