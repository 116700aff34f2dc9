from pydantic import BaseModel
from typing import List, Literal, Optional

class PricePointOutcome(BaseModel):
    hour_index: int
    point_id: str
    status: Literal["stored", "missing", "failed"]
    error: Optional[str] = None

class SyncReport(BaseModel):
    """Per-hour outcome of one sync pass for one symbol."""
    symbol: str
    token_address: str
    mode: Literal["initial", "recurring"]
    outcomes: List[PricePointOutcome] = []

    @property
    def stored_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "stored")

    @property
    def missing_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "missing")

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def failures(self) -> List[PricePointOutcome]:
        return [o for o in self.outcomes if o.status == "failed"]
