from typing import Annotated, List, Dict, Any, Optional, Union, Literal
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer


# Timestamps are epoch milliseconds kept as Python ints (arbitrary precision)
# and always rendered as decimal strings.
Timestamp = Annotated[int, PlainSerializer(lambda value: str(value), return_type=str)]

TransactionType = Literal["trade", "draft", "waiver", "free_agent", "commissioner"]
ItemDirection = Literal["add", "drop"]
OriginType = Literal["startup_draft", "rookie_draft", "waiver", "free_agent", "commissioner", "unknown"]


class ManagerRef(BaseModel):
    id: str
    username: str
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.username


class PlayerAsset(BaseModel):
    type: Literal["player"] = "player"
    id: str
    sleeper_id: Optional[str] = None
    name: str = "Unknown Player"
    position: Optional[str] = None
    team: Optional[str] = None


class DraftPickAsset(BaseModel):
    type: Literal["draft_pick"] = "draft_pick"
    id: str
    season: str
    round: int
    original_owner_id: str
    current_owner_id: Optional[str] = None
    previous_owner_id: Optional[str] = None
    original_owner: Optional[ManagerRef] = None
    current_owner: Optional[ManagerRef] = None
    pick_number: Optional[int] = None
    player_selected_id: Optional[str] = None
    player_selected: Optional[PlayerAsset] = None
    name: str = ""

    def model_post_init(self, __context: Any) -> None:
        if not self.name:
            self.name = (self.player_selected.name if self.player_selected
                         else f"{self.season} Round {self.round} Pick")

    @property
    def is_consumed(self) -> bool:
        return self.player_selected_id is not None


Asset = Annotated[Union[PlayerAsset, DraftPickAsset], Field(discriminator="type")]


# ---------------------------------------------------------------------------
# Records handed over by the persistence layer
# ---------------------------------------------------------------------------

class LeagueRecord(BaseModel):
    id: str
    sleeper_league_id: str
    name: str
    season: str
    season_type: str = "regular"
    status: Optional[str] = None
    total_rosters: int = 0
    previous_league_id: Optional[str] = None  # Sleeper id of the previous season


class TransactionItemRecord(BaseModel):
    type: ItemDirection
    manager: Optional[ManagerRef] = None
    player: Optional[PlayerAsset] = None
    draft_pick: Optional[DraftPickAsset] = None
    faab_amount: Optional[int] = None


class TransactionRecord(BaseModel):
    id: str
    sleeper_transaction_id: Optional[str] = None
    league_id: str
    type: TransactionType
    status: str = "complete"
    week: Optional[int] = None
    timestamp: Timestamp
    creator: Optional[str] = None
    items: List[TransactionItemRecord] = []


# ---------------------------------------------------------------------------
# Dynasty / season chain
# ---------------------------------------------------------------------------

class LeagueHistoryNode(BaseModel):
    league_id: Optional[str] = None  # internal id, None when only known upstream
    sleeper_league_id: str
    name: str
    season: str
    season_type: str = "regular"
    status: Optional[str] = None
    total_rosters: int = 0
    sleeper_previous_league_id: Optional[str] = None
    in_database: bool


class BrokenChain(BaseModel):
    before_season: str
    after_season: str


class DynastyChain(BaseModel):
    total_seasons: int
    leagues: List[LeagueHistoryNode]  # oldest first
    current_league: LeagueHistoryNode
    oldest_league: LeagueHistoryNode
    missing_seasons: List[str] = []
    broken_chains: List[BrokenChain] = []


# ---------------------------------------------------------------------------
# Transaction graph
# ---------------------------------------------------------------------------

class TradeParticipant(BaseModel):
    """Everything one manager gave and received in a single transaction."""
    manager: ManagerRef
    assets_given: List[Asset] = []
    assets_received: List[Asset] = []


class TransactionNode(BaseModel):
    id: str
    sleeper_transaction_id: Optional[str] = None
    type: TransactionType
    status: str
    week: Optional[int] = None
    season: str
    league_name: str
    timestamp: Timestamp
    creator: Optional[str] = None
    description: str
    assets_received: List[Asset] = []
    assets_given: List[Asset] = []
    manager_from: Optional[ManagerRef] = None
    manager_to: Optional[ManagerRef] = None
    participants: List[TradeParticipant] = []

    @property
    def all_assets(self) -> List[Union[PlayerAsset, DraftPickAsset]]:
        seen = set()
        assets = []
        for asset in [*self.assets_received, *self.assets_given,
                      *(a for p in self.participants for a in [*p.assets_given, *p.assets_received])]:
            if asset.id not in seen:
                seen.add(asset.id)
                assets.append(asset)
        return assets


class TransactionGraph(BaseModel):
    """Request-scoped snapshot of a dynasty's transaction history."""
    model_config = ConfigDict(frozen=True)

    nodes: Dict[str, Asset] = {}
    edges: Dict[str, List[str]] = {}  # asset_id -> transaction ids, ingestion order
    chains: Dict[str, TransactionNode] = {}
    ingestion_order: Dict[str, int] = {}
    seasons: List[str] = []
    pick_selections: Dict[str, List[str]] = {}  # player_id -> draft pick ids used on him
    roster_holders: Dict[str, ManagerRef] = {}


# ---------------------------------------------------------------------------
# Transaction chain (forward trace)
# ---------------------------------------------------------------------------

class TransactionChain(BaseModel):
    root_asset: Asset
    total_transactions: int = 0
    seasons_spanned: int = 0
    current_owner: Optional[ManagerRef] = None
    original_owner: Optional[ManagerRef] = None
    transaction_path: List[TransactionNode] = []
    derived_assets: List["TransactionChain"] = []
    truncated_reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Complete transaction lineage (point-in-time, both directions)
# ---------------------------------------------------------------------------

class OriginPoint(BaseModel):
    type: OriginType
    transaction: Optional[TransactionNode] = None
    manager: Optional[ManagerRef] = None
    timestamp: Optional[Timestamp] = None
    season: Optional[str] = None


class OriginChain(BaseModel):
    transactions: List[TransactionNode] = []
    origin_point: OriginPoint


class LineageStatus(BaseModel):
    type: Literal["active_roster", "traded", "dropped", "draft_pick_used"]
    current_manager: Optional[ManagerRef] = None
    transformed_to: Optional[PlayerAsset] = None


class FutureChain(BaseModel):
    transactions: List[TransactionNode] = []
    current_status: LineageStatus


class ManagerTenure(BaseModel):
    manager: ManagerRef
    start_date: Timestamp
    end_date: Optional[Timestamp] = None
    days_held: int


class AssetTimeline(BaseModel):
    total_days: int = 0
    manager_tenures: List[ManagerTenure] = []


class AssetLineage(BaseModel):
    asset: Asset
    transaction_side: Literal["given", "received"]
    managed_by: Optional[ManagerRef] = None
    origin_chain: OriginChain
    future_chain: FutureChain
    timeline: AssetTimeline


class LineagePerspective(BaseModel):
    manager: ManagerRef
    role: Literal["giving", "receiving", "both"]


class LineageSummary(BaseModel):
    total_assets_traced: int
    longest_chain_length: int
    assets_given: int
    assets_received: int
    origin_types: Dict[str, int] = {}


class CompleteTransactionLineage(BaseModel):
    target_transaction: TransactionNode
    perspective: LineagePerspective
    asset_lineages: List[AssetLineage]
    summary: LineageSummary


# ---------------------------------------------------------------------------
# Asset trade tree
# ---------------------------------------------------------------------------

class TradeTreeOrigin(BaseModel):
    transaction: TransactionNode
    type: OriginType
    original_manager: Optional[ManagerRef] = None
    date: Timestamp


class HistoryEvent(BaseModel):
    transaction: TransactionNode
    action: Literal["acquired", "dropped", "traded_away"]
    from_manager: Optional[ManagerRef] = None
    to_manager: Optional[ManagerRef] = None


class TradePackage(BaseModel):
    assets_received: List["AssetTradeTree"] = []
    total_value: str
    truncated: bool = False


class FinalTrade(BaseModel):
    transaction: TransactionNode
    trade_package: TradePackage


class CurrentStatus(BaseModel):
    type: Literal["on_roster", "dropped", "traded_away", "drafted_as_player"]
    current_manager: Optional[ManagerRef] = None
    transformed_to: Optional[PlayerAsset] = None
    as_of_date: Timestamp


class TradeTreeTimeline(BaseModel):
    total_days_tracked: int = 0
    manager_tenures: List[ManagerTenure] = []


class AssetTradeTree(BaseModel):
    asset: Asset
    origin: TradeTreeOrigin
    chronological_history: List[HistoryEvent] = []
    final_trade: Optional[FinalTrade] = None
    current_status: CurrentStatus
    timeline: TradeTreeTimeline


# ---------------------------------------------------------------------------
# Player network (ego-network)
# ---------------------------------------------------------------------------

class NetworkNode(BaseModel):
    asset: Asset
    depth: int
    importance: float


class NetworkConnection(BaseModel):
    from_asset: str
    to_asset: str
    transaction_id: str
    depth: int


class PlayerNetwork(BaseModel):
    nodes: List[NetworkNode] = []
    transactions: List[TransactionNode] = []
    connections: List[NetworkConnection] = []


class PlayerNetworkStats(BaseModel):
    total_nodes: int
    total_transactions: int
    depth_distribution: Dict[int, int] = {}
    transaction_types: Dict[str, int] = {}
    build_time_ms: int = 0


class PlayerNetworkResponse(BaseModel):
    focal_asset: Asset
    network: PlayerNetwork
    stats: PlayerNetworkStats


class ManagerAcquisitionChains(BaseModel):
    manager: ManagerRef
    current_roster: List[PlayerAsset] = []
    acquisition_chains: List[TransactionChain] = []


TransactionChain.model_rebuild()
TradePackage.model_rebuild()
FinalTrade.model_rebuild()
AssetTradeTree.model_rebuild()
