"""
Keeps the stored tokens and their hourly prices in step with the subgraph.

At startup every configured symbol gets a full backfill of the trailing
history window; afterwards each tick refreshes the token metadata and the
current hour only.
"""
import asyncio
import logging
import math
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

from app.core.config import resolve_token_address
from app.core.db import SessionLocal
from app.core.exceptions import RepositoryError, SourceUnavailable, TokenNotSupported
from app.core.time_buckets import backfill_hour_indexes, hour_index, price_point_id
from app.crud.token import upsert_price_point, upsert_token
from app.schemas.sync import PricePointOutcome, SyncReport
from app.schemas.token import HourlyPrice
from app.services.uniswap_client import UniswapSubgraphClient

logger = logging.getLogger(__name__)


class TokenSynchronizer:
    """Runs fetch -> transform -> upsert passes for one symbol at a time."""

    def __init__(
        self,
        client: UniswapSubgraphClient,
        token_addresses: Mapping[str, str],
        session_factory: Callable = SessionLocal,
        history_days: int = 7,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.token_addresses = token_addresses
        self.session_factory = session_factory
        self.history_days = history_days
        self.clock = clock

    def resolve_address(self, symbol: str) -> str:
        return resolve_token_address(self.token_addresses, symbol)

    async def sync_initial(self, symbol: str) -> SyncReport:
        """Store the token and every hour of the trailing history window."""
        hours = backfill_hour_indexes(self.clock(), self.history_days)
        return await self._sync(symbol, "initial", hours)

    async def sync_recurring(self, symbol: str) -> SyncReport:
        """Refresh the token and store the current hour."""
        return await self._sync(symbol, "recurring", [hour_index(self.clock())])

    async def _fetch_hours(self, token_address: str, hours: Sequence[int]) -> List[Union[Optional[HourlyPrice], BaseException]]:
        # all-settled: one failing hour must not cancel its siblings
        tasks = [self.client.fetch_hourly_price(token_address, index) for index in hours]
        return await asyncio.gather(*tasks, return_exceptions=True)

    async def _sync(self, symbol: str, mode: str, hours: Sequence[int]) -> SyncReport:
        token_address = self.resolve_address(symbol)
        logger.info(f"Starting {mode} sync for {symbol.upper()} ({len(hours)} hours).")

        metadata = await self.client.fetch_token_metadata(token_address)
        report = SyncReport(symbol=symbol.upper(), token_address=token_address, mode=mode)

        first_write_error = None
        db = self.session_factory()
        try:
            upsert_token(db, token_address, metadata)
            results = await self._fetch_hours(token_address, hours)

            for index, result in zip(hours, results):
                point_id = price_point_id(token_address, index)
                if isinstance(result, Exception):
                    if isinstance(result, SourceUnavailable):
                        logger.error(f"Failed to fetch hour data {point_id}: {result}")
                    else:
                        logger.error(f"Unexpected error fetching hour data {point_id}: {result}", exc_info=result)
                    report.outcomes.append(PricePointOutcome(hour_index=index, point_id=point_id, status="failed", error=str(result)))
                elif isinstance(result, BaseException):
                    raise result
                elif result is None:
                    report.outcomes.append(PricePointOutcome(hour_index=index, point_id=point_id, status="missing"))
                else:
                    # a failed write is recorded and the remaining hours are still written
                    try:
                        upsert_price_point(db, point_id, token_address, result)
                    except RepositoryError as e:
                        logger.error(f"Failed to store hour data {point_id}: {e}")
                        report.outcomes.append(PricePointOutcome(hour_index=index, point_id=point_id, status="failed", error=str(e)))
                        first_write_error = first_write_error or e
                        continue
                    report.outcomes.append(PricePointOutcome(hour_index=index, point_id=point_id, status="stored"))
        finally:
            db.close()

        logger.info(f"{mode.capitalize()} sync for {report.symbol} finished: {report.stored_count} stored, "
                    f"{report.missing_count} missing, {report.failed_count} failed.")
        if first_write_error is not None:
            raise RepositoryError(f"Storing price points for {report.symbol} failed", report=report) from first_write_error
        return report

    async def sync_symbols(self, symbols: Sequence[str], initial: bool = False) -> Dict[str, Union[SyncReport, Exception]]:
        """
        Sync several symbols concurrently. A failing symbol is logged and
        returned as its exception; it never affects the others.
        """
        run = self.sync_initial if initial else self.sync_recurring
        results = await asyncio.gather(*(run(symbol) for symbol in symbols), return_exceptions=True)
        outcome = {}
        for symbol, result in zip(symbols, results):
            if isinstance(result, TokenNotSupported):
                logger.error(f"Sync for {symbol} skipped: {result}")
            elif isinstance(result, Exception):
                logger.error(f"Sync for {symbol} failed: {result}", exc_info=result)
            elif isinstance(result, BaseException):
                raise result
            outcome[symbol] = result
        return outcome


def seconds_until_next_run(now: datetime, interval_minutes: int) -> float:
    """Seconds from now to the next wall-clock multiple of the interval (top of the hour for 60)."""
    interval_seconds = interval_minutes * 60
    current = now.timestamp()
    next_run = (math.floor(current / interval_seconds) + 1) * interval_seconds
    return next_run - current


async def start_sync_loop(synchronizer: TokenSynchronizer, symbols: Sequence[str], interval_minutes: int = 60):
    """
    Backfills every symbol once, then refreshes them on each interval boundary.
    Runs until cancelled.
    """
    logger.info(f"Starting token sync loop for {list(symbols)} every {interval_minutes} minutes...")
    await synchronizer.sync_symbols(symbols, initial=True)
    while True:
        sleep_duration = seconds_until_next_run(datetime.now(timezone.utc), interval_minutes)
        logger.info(f"Next token sync for {list(symbols)} scheduled in {sleep_duration:.2f} seconds.")
        await asyncio.sleep(sleep_duration)
        await synchronizer.sync_symbols(symbols)
