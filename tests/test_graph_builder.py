import aiosqlite
import pytest

from dynasty_lineage.errors import DataIntegrityError
from dynasty_lineage.models.lineage import LeagueHistoryNode, TransactionItemRecord
from dynasty_lineage.services import graph_builder
from dynasty_lineage.services.graph_builder import build_transaction_node, group_by_manager, resolve_trade_pair

from factories import (
    ALICE,
    ALICE_2023_FIRST,
    BOB,
    CAROL,
    XAVIER,
    YATES,
    ZEKE,
    add,
    drop,
    make_graph,
    player,
    swap,
    transaction,
)


def _history_node(league_id, season, in_database=True):
    return LeagueHistoryNode(league_id=league_id, sleeper_league_id=f"s-{league_id}", name=f"League {season}",
                             season=season, in_database=in_database)


def test_two_party_trade_node():
    node = build_transaction_node(transaction("t2", "trade", 1, swap(ALICE, XAVIER, BOB, YATES)), "Dynasty", "2023")

    assert node.manager_from == ALICE
    assert node.manager_to == BOB
    assert [a.id for a in node.assets_given] == [XAVIER.id]
    assert [a.id for a in node.assets_received] == [YATES.id]
    assert node.description == "Trade between Alice and Bob"
    assert [p.manager.id for p in node.participants] == [ALICE.id, BOB.id]


def test_trade_pair_orients_around_focus_asset():
    items = swap(ALICE, XAVIER, BOB, YATES)
    node = build_transaction_node(transaction("t2", "trade", 1, items), "Dynasty", "2023", focus_asset_id=YATES.id)

    assert node.manager_from == BOB
    assert node.manager_to == ALICE
    assert [a.id for a in node.assets_received] == [XAVIER.id]


def test_three_party_trade_keeps_every_participant():
    # Alice -> Bob: Xavier, Bob -> Carol: Yates, Carol -> Alice: Zeke
    items = [
        drop(ALICE, XAVIER), add(BOB, XAVIER),
        drop(BOB, YATES), add(CAROL, YATES),
        drop(CAROL, ZEKE), add(ALICE, ZEKE),
    ]
    node = build_transaction_node(transaction("t9", "trade", 1, items), "Dynasty", "2023", focus_asset_id=YATES.id)

    assert len(node.participants) == 3
    assert node.manager_from == BOB
    assert node.manager_to == CAROL
    assert [a.id for a in node.assets_given] == [YATES.id]
    assert [a.id for a in node.assets_received] == [XAVIER.id]


def test_resolve_trade_pair_without_focus_uses_first_two_groups():
    participants = group_by_manager([(item, item.player) for item in swap(BOB, YATES, CAROL, ZEKE)])
    manager_from, manager_to, given, received = resolve_trade_pair(participants)

    assert (manager_from, manager_to) == (BOB, CAROL)
    assert [a.id for a in given] == [YATES.id]
    assert [a.id for a in received] == [ZEKE.id]


def test_resolve_trade_pair_with_no_participants():
    assert resolve_trade_pair([]) == (None, None, [], [])


def test_descriptions_for_non_trades():
    draft = build_transaction_node(
        transaction("t1", "draft", 1, [drop(ALICE, ALICE_2023_FIRST), add(ALICE, XAVIER)]), "Dynasty", "2023"
    )
    waiver = build_transaction_node(transaction("t4", "waiver", 2, [add(CAROL, ZEKE)]), "Dynasty", "2024")
    empty = build_transaction_node(transaction("t5", "commissioner", 3, []), "Dynasty", "2024")

    assert draft.description == "Draft selection by Alice"
    assert waiver.description == "waiver by carol"
    assert empty.description == "commissioner transaction"
    assert empty.assets_received == [] and empty.assets_given == []


def test_unresolvable_item_raises():
    items = [TransactionItemRecord(type="add", manager=ALICE)]

    with pytest.raises(DataIntegrityError):
        build_transaction_node(transaction("bad", "waiver", 1, items), "Dynasty", "2023")


def test_graph_indices(graph):
    assert set(graph.chains) == {"t1", "t2", "t3", "t4"}
    assert graph.edges[YATES.id] == ["t2", "t3"]
    assert graph.edges[ALICE_2023_FIRST.id] == ["t1"]
    assert graph.seasons == ["2023", "2024"]
    assert graph.ingestion_order == {"t1": 0, "t2": 1, "t3": 2, "t4": 3}
    assert graph.pick_selections == {XAVIER.id: [ALICE_2023_FIRST.id]}


def test_duplicate_transaction_is_added_once():
    tx = transaction("t1", "waiver", 1, [add(ALICE, XAVIER)])
    graph = make_graph([("2023", [tx]), ("2024", [tx])])

    assert list(graph.chains) == ["t1"]
    assert graph.edges[XAVIER.id] == ["t1"]


def test_graph_is_frozen(graph):
    with pytest.raises(Exception):
        graph.seasons = []


@pytest.mark.asyncio
async def test_build_graph_is_idempotent(store):
    seasons = [_history_node("league-2023", "2023"), _history_node("league-2024", "2024")]

    first = await graph_builder.build_graph(store, seasons)
    second = await graph_builder.build_graph(store, seasons)

    assert len(first.nodes) == len(second.nodes) == 5
    assert len(first.chains) == len(second.chains) == 4
    assert {k: len(v) for k, v in first.edges.items()} == {k: len(v) for k, v in second.edges.items()}
    assert first.roster_holders[ZEKE.id] == ALICE


@pytest.mark.asyncio
async def test_build_graph_skips_seasons_not_in_database(store):
    seasons = [_history_node(None, "2022", in_database=False), _history_node("league-2024", "2024")]

    graph = await graph_builder.build_graph(store, seasons)

    assert set(graph.chains) == {"t3", "t4"}
    assert graph.seasons == ["2022", "2024"]


class FlakyStore:
    """Fails to load one season."""

    def __init__(self, store, failing_league_id):
        self.store = store
        self.failing_league_id = failing_league_id

    async def list_transactions(self, league_ids):
        if self.failing_league_id in league_ids:
            raise aiosqlite.OperationalError("database is locked")
        return await self.store.list_transactions(league_ids)

    async def list_roster_holders(self, league_ids):
        return await self.store.list_roster_holders(league_ids)


@pytest.mark.asyncio
async def test_failing_season_contributes_nothing(store):
    seasons = [_history_node("league-2023", "2023"), _history_node("league-2024", "2024")]

    graph = await graph_builder.build_graph(FlakyStore(store, "league-2023"), seasons)

    assert set(graph.chains) == {"t3", "t4"}


class CorruptStore(FlakyStore):
    async def list_transactions(self, league_ids):
        return [transaction("bad", "trade", 1, [TransactionItemRecord(type="drop", manager=ALICE)])]


@pytest.mark.asyncio
async def test_data_integrity_error_is_not_swallowed(store):
    with pytest.raises(DataIntegrityError):
        await graph_builder.build_graph(CorruptStore(store, None), [_history_node("league-2023", "2023")])


def test_richer_draft_pick_replaces_unconsumed_version():
    unused = ALICE_2023_FIRST.model_copy(update={"player_selected_id": None, "player_selected": None})
    graph = make_graph([
        ("2023", [
            transaction("t0", "trade", 1, swap(ALICE, unused, BOB, player("pq"))),
            transaction("t1", "draft", 2, [drop(BOB, ALICE_2023_FIRST), add(BOB, XAVIER)]),
        ]),
    ])

    assert graph.nodes[ALICE_2023_FIRST.id].player_selected_id == XAVIER.id
