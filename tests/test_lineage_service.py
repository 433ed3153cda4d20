import pytest

from dynasty_lineage.errors import (
    AssetNotFoundError,
    DraftPickNotFoundError,
    InvalidRequestError,
    LeagueNotFoundError,
    ManagerNotFoundError,
)
from dynasty_lineage.services import lineage_service

from factories import ALICE, ALICE_2023_FIRST, BOB, XAVIER, ZEKE


@pytest.mark.asyncio
async def test_transaction_chain_across_seasons(store):
    chain = await lineage_service.build_transaction_chain(store, XAVIER.id, "player", "sl-2024")

    assert [tx.id for tx in chain.transaction_path] == ["t1", "t2"]
    assert chain.original_owner == ALICE
    assert chain.current_owner == BOB
    assert chain.derived_assets[0].seasons_spanned == 2


@pytest.mark.asyncio
async def test_transaction_chain_by_sleeper_player_id(store):
    chain = await lineage_service.build_transaction_chain(store, "spx", "player", "sl-2024")

    assert chain.root_asset.id == XAVIER.id


@pytest.mark.asyncio
async def test_transaction_chain_rejects_unknown_assets(store):
    with pytest.raises(AssetNotFoundError):
        await lineage_service.build_transaction_chain(store, "ghost", "player", "sl-2024")
    with pytest.raises(AssetNotFoundError):
        await lineage_service.build_transaction_chain(store, XAVIER.id, "draft_pick", "sl-2024")
    with pytest.raises(InvalidRequestError):
        await lineage_service.build_transaction_chain(store, XAVIER.id, "team", "sl-2024")


@pytest.mark.asyncio
async def test_complete_lineage_accepts_sleeper_ids(store):
    lineage = await lineage_service.build_complete_transaction_lineage(store, "st3", "user1", "sl-2024")

    assert lineage.target_transaction.id == "t3"
    assert lineage.perspective.manager == ALICE
    assert lineage.perspective.role == "both"
    assert lineage.summary.total_assets_traced == 2


@pytest.mark.asyncio
async def test_complete_lineage_errors(store):
    with pytest.raises(ManagerNotFoundError):
        await lineage_service.build_complete_transaction_lineage(store, "t3", "nobody", "sl-2024")
    with pytest.raises(InvalidRequestError):
        await lineage_service.build_complete_transaction_lineage(store, "t3", BOB.id, "sl-2024")


@pytest.mark.asyncio
async def test_asset_trade_tree(store):
    tree = await lineage_service.build_asset_trade_tree(store, XAVIER.id, "st1", "sl-2024")

    assert tree.final_trade.transaction.id == "t2"
    assert tree.current_status.type == "on_roster"
    assert tree.current_status.current_manager == BOB


@pytest.mark.asyncio
async def test_player_network(store):
    response = await lineage_service.get_player_network(store, XAVIER.id, "sl-2024", depth=1)

    assert response.stats.total_nodes == 3
    assert response.focal_asset.id == XAVIER.id


@pytest.mark.asyncio
async def test_player_network_depth_bounds(store):
    with pytest.raises(InvalidRequestError):
        await lineage_service.get_player_network(store, XAVIER.id, "sl-2024", depth=0)
    with pytest.raises(InvalidRequestError):
        await lineage_service.get_player_network(store, XAVIER.id, "sl-2024", depth=99)


@pytest.mark.asyncio
async def test_manager_acquisition_chains(store):
    result = await lineage_service.get_manager_acquisition_chains(store, ALICE.id, "sl-2024")

    assert result.manager == ALICE
    assert [asset.id for asset in result.current_roster] == [ZEKE.id]
    assert [chain.root_asset.id for chain in result.acquisition_chains] == [ZEKE.id]
    assert [tx.id for tx in result.acquisition_chains[0].transaction_path] == ["t3"]


@pytest.mark.asyncio
async def test_manager_acquisition_chains_errors(store):
    with pytest.raises(ManagerNotFoundError):
        await lineage_service.get_manager_acquisition_chains(store, "nobody", "sl-2024")
    with pytest.raises(LeagueNotFoundError):
        await lineage_service.get_manager_acquisition_chains(store, ALICE.id, "nope")


@pytest.mark.asyncio
async def test_draft_pick_chain(store):
    chain = await lineage_service.get_draft_pick_chain(store, "2023", 1, ALICE.id, "sl-2023")

    assert chain.root_asset.id == ALICE_2023_FIRST.id
    assert [tx.id for tx in chain.transaction_path] == ["t1"]
    assert chain.derived_assets[0].root_asset.id == XAVIER.id


@pytest.mark.asyncio
async def test_draft_pick_chain_not_found(store):
    with pytest.raises(DraftPickNotFoundError):
        await lineage_service.get_draft_pick_chain(store, "2023", 3, ALICE.id, "sl-2023")
