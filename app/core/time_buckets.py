"""Hour bucketing helpers shared by the synchronizer and the query service."""
import math
from datetime import datetime
from typing import List, Union

SECONDS_PER_HOUR = 3600
HOURS_PER_DAY = 24
LOCAL_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

Number = Union[int, float]


def hour_index(epoch_seconds: Number) -> int:
    """Index of the hour bucket containing ``epoch_seconds``: floor(seconds / 3600)."""
    return math.floor(epoch_seconds / SECONDS_PER_HOUR)


def hour_start(epoch_seconds: Number) -> int:
    """Epoch seconds at the start of the hour containing ``epoch_seconds``."""
    return hour_index(epoch_seconds) * SECONDS_PER_HOUR


def price_point_id(token_address: str, index: int) -> str:
    """Subgraph id of a tokenHourData entity, also the primary key of a stored price point."""
    return f"{token_address}-{index}"


def backfill_hour_indexes(now: Number, days: int = 7) -> List[int]:
    """
    Ascending hour indexes of the trailing window ending with the current hour.

    For the default 7 days this is 168 buckets, the last one being ``hour_index(now)``.
    """
    current = hour_index(now)
    return list(range(current - days * HOURS_PER_DAY + 1, current + 1))


def format_local_timestamp(epoch_seconds: Number) -> str:
    """Render epoch seconds as a local-time ``yyyy-MM-dd'T'HH:mm:ss`` string."""
    return datetime.fromtimestamp(epoch_seconds).strftime(LOCAL_TIMESTAMP_FORMAT)
