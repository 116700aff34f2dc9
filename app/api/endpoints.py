from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session # type: ignore
import asyncio
import logging

from app.api.deps import get_query_service, get_synchronizer, get_uniswap_client
from app.core.db import get_db
from app.schemas.token import PricePointInDB, TokenHistory, TokenInDB, TokenMetadata
from app.services.query_service import TokenQueryService
from app.services.sync_service import TokenSynchronizer
from app.services.uniswap_client import UniswapSubgraphClient

logger = logging.getLogger(__name__)

router = APIRouter()

# Manual syncs keep a reference so the task is not garbage collected mid-run
_background_syncs = set()

# --- Stored token data ---
@router.get(
    "/tokens/{symbol}",
    response_model=TokenInDB,
    summary="Get a stored token",
    description="Returns the token record kept up to date by the sync job.",
)
def read_token(
    symbol: str,
    db: Session = Depends(get_db),
    query_service: TokenQueryService = Depends(get_query_service),
):
    logger.info(f"Token lookup for {symbol.upper()}.")
    query_service.resolve_address(symbol)
    token = query_service.get_token_by_symbol(db, symbol)
    if token is None:
        logger.info(f"No stored token for {symbol.upper()}.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Token not found")
    return token

@router.get(
    "/tokens/{symbol}/data",
    response_model=TokenHistory,
    summary="Query resampled price history",
    description="Open, close, high, low and USD price of the last 7 days, one point every timeUnit hours.",
)
def read_token_history(
    symbol: str,
    time_unit: int = Query(1, alias="timeUnit", ge=1, description="Sampling interval in hours"),
    db: Session = Depends(get_db),
    query_service: TokenQueryService = Depends(get_query_service),
):
    logger.info(f"History query for {symbol.upper()} every {time_unit} hours.")
    return query_service.get_history(db, symbol, time_unit)

@router.get(
    "/tokens/{symbol}/latest",
    response_model=PricePointInDB,
    summary="Get the latest stored hour",
)
def read_latest_price(
    symbol: str,
    db: Session = Depends(get_db),
    query_service: TokenQueryService = Depends(get_query_service),
):
    price = query_service.get_latest_price(db, symbol)
    if price is None:
        logger.warning(f"No price data stored for {symbol.upper()}.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No price data found")
    return price

# --- Subgraph passthrough and manual sync ---
@router.get(
    "/tokens/{symbol}/remote",
    response_model=TokenMetadata,
    response_model_by_alias=True,
    summary="Fetch live token metadata",
    description=(
        "Queries the Uniswap subgraph directly without touching the database. "
        "Fields keep the subgraph's camelCase names (totalSupply, volumeUSD)."
    ),
)
async def read_remote_token(symbol: str, client: UniswapSubgraphClient = Depends(get_uniswap_client)):
    logger.info(f"Live metadata request for {symbol.upper()}.")
    return await client.fetch_token(symbol)

@router.post(
    "/tokens/{symbol}/sync",
    summary="Trigger a token sync",
    description="Refreshes the token and its current hour in the background.",
    status_code=status.HTTP_202_ACCEPTED,
)
async def trigger_token_sync(symbol: str, synchronizer: TokenSynchronizer = Depends(get_synchronizer)):
    synchronizer.resolve_address(symbol)
    logger.info(f"Manual sync triggered for {symbol.upper()}.")
    task = asyncio.create_task(synchronizer.sync_symbols([symbol.upper()]))
    _background_syncs.add(task)
    task.add_done_callback(_background_syncs.discard)
    return {"message": f"Sync for {symbol.upper()} initiated. Data will be available shortly."}
