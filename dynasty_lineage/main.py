import logging
from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from . import database
from .config import configure_logging, settings
from .errors import DataIntegrityError, InvalidRequestError, NotFoundError
from .models.lineage import (
    CompleteTransactionLineage,
    DynastyChain,
    ManagerAcquisitionChains,
    PlayerNetworkResponse,
    TransactionChain,
)
from .services import lineage_service, tree_formatter
from .store import LineageStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await database.create_tables()
    yield


app = FastAPI(lifespan=lifespan)

# Configure CORS for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store() -> LineageStore:
    return LineageStore(settings.database_url)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(DataIntegrityError)
async def data_integrity_handler(request: Request, exc: DataIntegrityError):
    logger.error("Data integrity error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.get("/")
def read_root():
    return {"status": "ok", "service": "dynasty-lineage"}


@app.get("/league/{league_id}/history", response_model=DynastyChain)
async def get_league_history(league_id: str, store: LineageStore = Depends(get_store)):
    return await lineage_service.get_league_history(store, league_id)


@app.get("/league/{league_id}/transaction_chain/{asset_id}", response_model=TransactionChain)
async def get_transaction_chain(
    league_id: str,
    asset_id: str,
    asset_type: str = Query("player"),
    store: LineageStore = Depends(get_store),
):
    return await lineage_service.build_transaction_chain(store, asset_id, asset_type, league_id)


@app.get("/league/{league_id}/transactions/{transaction_id}/complete_lineage",
         response_model=CompleteTransactionLineage)
async def get_complete_lineage(
    league_id: str,
    transaction_id: str,
    manager_id: str = Query(...),
    store: LineageStore = Depends(get_store),
):
    return await lineage_service.build_complete_transaction_lineage(store, transaction_id, manager_id, league_id)


@app.get("/league/{league_id}/asset_trade_tree/{asset_id}")
async def get_asset_trade_tree(
    league_id: str,
    asset_id: str,
    transaction_id: Optional[str] = Query(None),
    format: Literal["json", "text"] = Query("json"),
    store: LineageStore = Depends(get_store),
):
    tree = await lineage_service.build_asset_trade_tree(store, asset_id, transaction_id, league_id)
    if format == "text":
        return PlainTextResponse(tree_formatter.format_asset_tree(tree))
    return tree


@app.get("/league/{league_id}/player_network/{asset_id}", response_model=PlayerNetworkResponse)
async def get_player_network(
    league_id: str,
    asset_id: str,
    depth: Optional[int] = Query(None),
    season: Optional[str] = Query(None),
    transaction_type: Optional[str] = Query(None),
    store: LineageStore = Depends(get_store),
):
    return await lineage_service.get_player_network(store, asset_id, league_id, depth, season, transaction_type)


@app.get("/league/{league_id}/manager/{manager_id}/acquisitions", response_model=ManagerAcquisitionChains)
async def get_manager_acquisitions(league_id: str, manager_id: str, store: LineageStore = Depends(get_store)):
    return await lineage_service.get_manager_acquisition_chains(store, manager_id, league_id)


@app.get("/league/{league_id}/draft_pick_chain/{season}/{round}/{original_owner_id}",
         response_model=TransactionChain)
async def get_draft_pick_chain(
    league_id: str,
    season: str,
    round: int,
    original_owner_id: str,
    store: LineageStore = Depends(get_store),
):
    return await lineage_service.get_draft_pick_chain(store, season, round, original_owner_id, league_id)


def run():
    import uvicorn
    uvicorn.run("dynasty_lineage.main:app", host="0.0.0.0", port=8000, reload=not settings.is_production)


if __name__ == "__main__":
    run()
