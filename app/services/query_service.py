"""Read side: stored tokens and resampled price history."""
import logging
import time
from typing import Callable, Iterable, List, Mapping, Optional
from sqlalchemy.orm import Session # type: ignore

from app.core.config import resolve_token_address
from app.core.exceptions import TokenNotSupported, ValidationError
from app.core.time_buckets import HOURS_PER_DAY, SECONDS_PER_HOUR, format_local_timestamp, hour_start
from app.crud.token import get_latest_price, get_token, list_prices
from app.models.token import Token, TokenPriceData
from app.schemas.token import HISTORY_METRICS, TokenHistory

logger = logging.getLogger(__name__)

# metric name in the response -> column on TokenPriceData
METRIC_COLUMNS = {
    "open": "open",
    "close": "close",
    "high": "high",
    "low": "low",
    "priceUSD": "price_usd",
}


def resample(points: Iterable[TokenPriceData], interval_hours: int, reference_unix: int) -> List[TokenPriceData]:
    """Keep the points whose start lies a whole number of intervals away from reference_unix."""
    step = interval_hours * SECONDS_PER_HOUR
    return [p for p in points if (p.period_start_unix - reference_unix) % step == 0]


class TokenQueryService:
    def __init__(self, token_addresses: Mapping[str, str], history_days: int = 7, clock: Callable[[], float] = time.time):
        self.token_addresses = token_addresses
        self.history_days = history_days
        self.clock = clock

    def resolve_address(self, symbol: str) -> str:
        return resolve_token_address(self.token_addresses, symbol)

    def get_token_by_symbol(self, db: Session, symbol: str) -> Optional[Token]:
        """Stored token for a ticker, None for unknown tickers or tokens not synced yet."""
        try:
            address = self.resolve_address(symbol)
        except TokenNotSupported:
            logger.info(f"Lookup for unsupported token {symbol}.")
            return None
        return get_token(db, address)

    def get_latest_price(self, db: Session, symbol: str) -> Optional[TokenPriceData]:
        return get_latest_price(db, self.resolve_address(symbol))

    def get_history(self, db: Session, symbol: str, interval_hours: int, now: Optional[float] = None) -> TokenHistory:
        """
        Price history of the trailing window, one point every interval_hours.

        The resampling is anchored to the start of the current hour, so the
        newest stored hour is always part of the result and the surviving
        points are exactly interval_hours apart.
        """
        address = self.resolve_address(symbol)
        if interval_hours is None or interval_hours < 1:
            raise ValidationError("Interval must be at least one hour")

        now = self.clock() if now is None else now
        since = now - self.history_days * HOURS_PER_DAY * SECONDS_PER_HOUR
        reference = hour_start(now)

        points = resample(list_prices(db, address, since), interval_hours, reference)
        logger.info(f"History for {symbol.upper()} every {interval_hours}h: {len(points)} points.")

        series = {metric: [] for metric in HISTORY_METRICS}
        for point in points:
            timestamp = format_local_timestamp(point.period_start_unix)
            for metric in HISTORY_METRICS:
                series[metric].append((timestamp, metric, getattr(point, METRIC_COLUMNS[metric])))

        return TokenHistory(
            symbol=symbol.upper(),
            token_address=address,
            interval_hours=interval_hours,
            reference_unix=reference,
            series=series,
        )
