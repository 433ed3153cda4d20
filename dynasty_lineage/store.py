"""
Read-only persistence boundary for the lineage engine.

Everything the engine knows about leagues, transactions and rosters comes
through LineageStore. The writer methods exist for seed scripts and tests;
syncing from Sleeper is handled elsewhere.
"""

import logging
from typing import Dict, Iterable, List, Optional, Union

from . import database
from .models.lineage import (
    DraftPickAsset,
    LeagueRecord,
    ManagerRef,
    PlayerAsset,
    TransactionItemRecord,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

_DRAFT_PICK_COLUMNS = """
    dp.id AS dp_id, dp.season AS dp_season, dp.round AS dp_round,
    dp.original_owner_id AS dp_original_owner_id, dp.current_owner_id AS dp_current_owner_id,
    dp.previous_owner_id AS dp_previous_owner_id, dp.pick_number AS dp_pick_number,
    dp.player_selected_id AS dp_player_selected_id,
    sp.sleeper_id AS sp_sleeper_id, sp.full_name AS sp_full_name,
    sp.position AS sp_position, sp.team AS sp_team,
    oo.username AS oo_username, oo.display_name AS oo_display_name,
    co.username AS co_username, co.display_name AS co_display_name
"""

_DRAFT_PICK_JOINS = """
    LEFT JOIN players sp ON sp.id = dp.player_selected_id
    LEFT JOIN managers oo ON oo.id = dp.original_owner_id
    LEFT JOIN managers co ON co.id = dp.current_owner_id
"""


def _player_from_row(row, prefix: str = "p_") -> PlayerAsset:
    return PlayerAsset(
        id=row[f"{prefix}id"],
        sleeper_id=row[f"{prefix}sleeper_id"],
        name=row[f"{prefix}full_name"] or "Unknown Player",
        position=row[f"{prefix}position"],
        team=row[f"{prefix}team"],
    )


def _draft_pick_from_row(row) -> DraftPickAsset:
    player_selected = None
    if row["dp_player_selected_id"]:
        player_selected = PlayerAsset(
            id=row["dp_player_selected_id"],
            sleeper_id=row["sp_sleeper_id"],
            name=row["sp_full_name"] or "Unknown Player",
            position=row["sp_position"],
            team=row["sp_team"],
        )

    original_owner = None
    if row["oo_username"] is not None:
        original_owner = ManagerRef(id=row["dp_original_owner_id"], username=row["oo_username"],
                                    display_name=row["oo_display_name"])
    current_owner = None
    if row["dp_current_owner_id"] and row["co_username"] is not None:
        current_owner = ManagerRef(id=row["dp_current_owner_id"], username=row["co_username"],
                                   display_name=row["co_display_name"])

    return DraftPickAsset(
        id=row["dp_id"],
        season=row["dp_season"],
        round=row["dp_round"],
        original_owner_id=row["dp_original_owner_id"],
        current_owner_id=row["dp_current_owner_id"],
        previous_owner_id=row["dp_previous_owner_id"],
        original_owner=original_owner,
        current_owner=current_owner,
        pick_number=row["dp_pick_number"],
        player_selected_id=row["dp_player_selected_id"],
        player_selected=player_selected,
    )


def _league_from_row(row) -> LeagueRecord:
    return LeagueRecord(
        id=row["id"],
        sleeper_league_id=row["sleeper_league_id"],
        name=row["name"],
        season=row["season"],
        season_type=row["season_type"],
        status=row["status"],
        total_rosters=row["total_rosters"],
        previous_league_id=row["previous_league_id"],
    )


class LineageStore:
    def __init__(self, database_url: str = None):
        self.database_url = database_url

    async def _connect(self):
        return await database.get_db_connection(self.database_url)

    async def create_tables(self):
        await database.create_tables(self.database_url)

    # ------------------------------------------------------------------
    # Leagues and managers
    # ------------------------------------------------------------------

    async def get_league(self, league_id: str) -> Optional[LeagueRecord]:
        """Look a league up by its Sleeper id or its internal id."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT * FROM leagues WHERE sleeper_league_id = ? OR id = ? LIMIT 1",
                (league_id, league_id),
            )
            row = await cursor.fetchone()
            return _league_from_row(row) if row else None
        finally:
            await db.close()

    async def get_manager(self, manager_id: str) -> Optional[ManagerRef]:
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT id, username, display_name FROM managers WHERE id = ? OR sleeper_user_id = ? LIMIT 1",
                (manager_id, manager_id),
            )
            row = await cursor.fetchone()
            if not row:
                return None
            return ManagerRef(id=row["id"], username=row["username"], display_name=row["display_name"])
        finally:
            await db.close()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def list_transactions(self, league_ids: Iterable[str]) -> List[TransactionRecord]:
        """All transactions for the given internal league ids, oldest first.

        Ties on timestamp keep ingestion order, and items keep their stored
        position, so repeated calls always return the same sequence.
        """
        league_ids = list(league_ids)
        if not league_ids:
            return []

        placeholders = ",".join("?" for _ in league_ids)
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"""
                SELECT t.rowid AS seq, t.* FROM transactions t
                WHERE t.league_id IN ({placeholders})
                ORDER BY CAST(t.timestamp AS INTEGER) ASC, t.rowid ASC
                """,
                league_ids,
            )
            tx_rows = await cursor.fetchall()
            if not tx_rows:
                return []

            cursor = await db.execute(
                f"""
                SELECT ti.transaction_id, ti.type AS item_type, ti.faab_amount,
                       m.id AS m_id, m.username AS m_username, m.display_name AS m_display_name,
                       p.id AS p_id, p.sleeper_id AS p_sleeper_id, p.full_name AS p_full_name,
                       p.position AS p_position, p.team AS p_team,
                       {_DRAFT_PICK_COLUMNS}
                FROM transaction_items ti
                JOIN transactions t ON t.id = ti.transaction_id
                LEFT JOIN managers m ON m.id = ti.manager_id
                LEFT JOIN players p ON p.id = ti.player_id
                LEFT JOIN draft_picks dp ON dp.id = ti.draft_pick_id
                {_DRAFT_PICK_JOINS}
                WHERE t.league_id IN ({placeholders})
                ORDER BY ti.transaction_id, ti.position, ti.id
                """,
                league_ids,
            )
            item_rows = await cursor.fetchall()
        finally:
            await db.close()

        items_by_transaction: Dict[str, List[TransactionItemRecord]] = {}
        for row in item_rows:
            manager = None
            if row["m_id"]:
                manager = ManagerRef(id=row["m_id"], username=row["m_username"],
                                     display_name=row["m_display_name"])
            items_by_transaction.setdefault(row["transaction_id"], []).append(
                TransactionItemRecord(
                    type=row["item_type"],
                    manager=manager,
                    player=_player_from_row(row) if row["p_id"] else None,
                    draft_pick=_draft_pick_from_row(row) if row["dp_id"] else None,
                    faab_amount=row["faab_amount"],
                )
            )

        return [
            TransactionRecord(
                id=row["id"],
                sleeper_transaction_id=row["sleeper_transaction_id"],
                league_id=row["league_id"],
                type=row["type"],
                status=row["status"],
                week=row["week"],
                timestamp=int(row["timestamp"]),
                creator=row["creator"],
                items=items_by_transaction.get(row["id"], []),
            )
            for row in tx_rows
        ]

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    async def get_asset(self, asset_id: str) -> Optional[Union[PlayerAsset, DraftPickAsset]]:
        """Find an asset by id, trying players first and then draft picks."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                SELECT id AS p_id, sleeper_id AS p_sleeper_id, full_name AS p_full_name,
                       position AS p_position, team AS p_team
                FROM players WHERE id = ? OR sleeper_id = ? LIMIT 1
                """,
                (asset_id, asset_id),
            )
            row = await cursor.fetchone()
            if row:
                return _player_from_row(row)

            cursor = await db.execute(
                f"SELECT {_DRAFT_PICK_COLUMNS} FROM draft_picks dp {_DRAFT_PICK_JOINS} WHERE dp.id = ?",
                (asset_id,),
            )
            row = await cursor.fetchone()
            return _draft_pick_from_row(row) if row else None
        finally:
            await db.close()

    async def find_draft_pick(self, league_id: str, season: str, round: int,
                              original_owner_id: str) -> Optional[DraftPickAsset]:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"""
                SELECT {_DRAFT_PICK_COLUMNS} FROM draft_picks dp {_DRAFT_PICK_JOINS}
                WHERE dp.league_id = ? AND dp.season = ? AND dp.round = ? AND dp.original_owner_id = ?
                """,
                (league_id, season, round, original_owner_id),
            )
            row = await cursor.fetchone()
            return _draft_pick_from_row(row) if row else None
        finally:
            await db.close()

    # ------------------------------------------------------------------
    # Rosters
    # ------------------------------------------------------------------

    async def list_roster_holders(self, league_ids: Iterable[str]) -> Dict[str, ManagerRef]:
        """Player id -> manager for season rosters, the latest season winning."""
        league_ids = list(league_ids)
        if not league_ids:
            return {}

        placeholders = ",".join("?" for _ in league_ids)
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"""
                SELECT rs.player_id, m.id, m.username, m.display_name
                FROM roster_slots rs
                JOIN rosters r ON r.id = rs.roster_id
                JOIN leagues l ON l.id = r.league_id
                JOIN managers m ON m.id = r.manager_id
                WHERE r.league_id IN ({placeholders}) AND r.week IS NULL
                ORDER BY l.season ASC, rs.id ASC
                """,
                league_ids,
            )
            rows = await cursor.fetchall()
        finally:
            await db.close()

        holders: Dict[str, ManagerRef] = {}
        for row in rows:
            holders[row["player_id"]] = ManagerRef(id=row["id"], username=row["username"],
                                                   display_name=row["display_name"])
        return holders

    async def list_roster_assets(self, manager_id: str, league_id: str) -> List[PlayerAsset]:
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                SELECT p.id AS p_id, p.sleeper_id AS p_sleeper_id, p.full_name AS p_full_name,
                       p.position AS p_position, p.team AS p_team
                FROM roster_slots rs
                JOIN rosters r ON r.id = rs.roster_id
                JOIN players p ON p.id = rs.player_id
                WHERE r.manager_id = ? AND r.league_id = ? AND r.week IS NULL
                ORDER BY rs.id
                """,
                (manager_id, league_id),
            )
            return [_player_from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    async def _write(self, statement: str, params) -> None:
        db = await self._connect()
        try:
            await db.execute(statement, params)
            await db.commit()
        finally:
            await db.close()

    async def add_league(self, league: LeagueRecord) -> None:
        await self._write(
            """
            INSERT OR REPLACE INTO leagues
                (id, sleeper_league_id, name, season, season_type, status, total_rosters, previous_league_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (league.id, league.sleeper_league_id, league.name, league.season, league.season_type,
             league.status, league.total_rosters, league.previous_league_id),
        )

    async def add_manager(self, manager: ManagerRef, sleeper_user_id: str = None) -> None:
        await self._write(
            "INSERT OR REPLACE INTO managers (id, sleeper_user_id, username, display_name) VALUES (?, ?, ?, ?)",
            (manager.id, sleeper_user_id, manager.username, manager.display_name),
        )

    async def add_player(self, player: PlayerAsset) -> None:
        await self._write(
            "INSERT OR REPLACE INTO players (id, sleeper_id, full_name, position, team) VALUES (?, ?, ?, ?, ?)",
            (player.id, player.sleeper_id, player.name, player.position, player.team),
        )

    async def add_draft_pick(self, pick: DraftPickAsset, league_id: str) -> None:
        await self._write(
            """
            INSERT OR REPLACE INTO draft_picks
                (id, league_id, season, round, original_owner_id, current_owner_id,
                 previous_owner_id, pick_number, player_selected_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (pick.id, league_id, pick.season, pick.round, pick.original_owner_id, pick.current_owner_id,
             pick.previous_owner_id, pick.pick_number, pick.player_selected_id),
        )

    async def add_transaction(self, transaction: TransactionRecord) -> None:
        """Persist a transaction and its items. Items reference existing rows by id."""
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT OR REPLACE INTO transactions
                    (id, sleeper_transaction_id, league_id, type, status, week, timestamp, creator)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (transaction.id, transaction.sleeper_transaction_id, transaction.league_id, transaction.type,
                 transaction.status, transaction.week, str(transaction.timestamp), transaction.creator),
            )
            await db.execute("DELETE FROM transaction_items WHERE transaction_id = ?", (transaction.id,))
            for position, item in enumerate(transaction.items):
                await db.execute(
                    """
                    INSERT INTO transaction_items
                        (transaction_id, position, type, manager_id, player_id, draft_pick_id, faab_amount)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (transaction.id, position, item.type,
                     item.manager.id if item.manager else None,
                     item.player.id if item.player else None,
                     item.draft_pick.id if item.draft_pick else None,
                     item.faab_amount),
                )
            await db.commit()
        finally:
            await db.close()

    async def add_roster_slot(self, league_id: str, manager_id: str, player_id: str,
                              position: str = "BN") -> None:
        roster_id = f"{league_id}:{manager_id}"
        db = await self._connect()
        try:
            await db.execute(
                "INSERT OR IGNORE INTO rosters (id, league_id, manager_id, week) VALUES (?, ?, ?, NULL)",
                (roster_id, league_id, manager_id),
            )
            await db.execute(
                "INSERT INTO roster_slots (roster_id, player_id, position) VALUES (?, ?, ?)",
                (roster_id, player_id, position),
            )
            await db.commit()
        finally:
            await db.close()
