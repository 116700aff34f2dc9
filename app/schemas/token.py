from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Tuple

HISTORY_METRICS = ("open", "close", "high", "low", "priceUSD")

# (local timestamp, metric name, value)
HistoryPoint = Tuple[str, str, float]

# --- Subgraph response shapes ---

class TokenMetadata(BaseModel):
    id: Optional[str] = Field(default=None, example="0x2260fac5e5542a773aa44fbcfedf7c193bc2c599")
    name: str = Field(..., example="Wrapped BTC")
    symbol: str = Field(..., example="WBTC")
    total_supply: float = Field(..., alias="totalSupply", example=18240)
    volume_usd: float = Field(..., alias="volumeUSD", example=120242943725.3597)
    decimals: int = Field(..., example=8)

    class Config:
        populate_by_name = True

class HourlyPrice(BaseModel):
    open: float
    close: float
    high: float
    low: float
    price_usd: float = Field(..., alias="priceUSD")
    period_start_unix: int = Field(..., alias="periodStartUnix")

    class Config:
        populate_by_name = True

class GraphQLError(BaseModel):
    message: str
    path: Optional[List[Any]] = None

class TokenQueryData(BaseModel):
    token: Optional[TokenMetadata] = None

class TokenHourQueryData(BaseModel):
    token_hour_data: Optional[HourlyPrice] = Field(default=None, alias="tokenHourData")

class TokenMetadataResult(BaseModel):
    """Envelope of the token(id) query: absent token and GraphQL errors are explicit variants."""
    data: Optional[TokenQueryData] = None
    errors: Optional[List[GraphQLError]] = None

    @property
    def token(self) -> Optional[TokenMetadata]:
        return self.data.token if self.data else None

class HourlyPriceResult(BaseModel):
    """Envelope of the tokenHourData(id) query."""
    data: Optional[TokenHourQueryData] = None
    errors: Optional[List[GraphQLError]] = None

    @property
    def price(self) -> Optional[HourlyPrice]:
        return self.data.token_hour_data if self.data else None

# --- API responses ---

class TokenInDB(BaseModel):
    token_address: str
    name: str
    symbol: str
    total_supply: float
    volume_usd: float
    decimals: int

    class Config:
        from_attributes = True

class PricePointInDB(BaseModel):
    id: str
    token_address: str
    open: float
    close: float
    high: float
    low: float
    price_usd: float
    period_start_unix: int

    class Config:
        from_attributes = True

class TokenHistory(BaseModel):
    symbol: str = Field(..., example="WBTC")
    token_address: str
    interval_hours: int = Field(..., example=24)
    reference_unix: int = Field(..., description="Start of the hour the resampling is anchored to")
    series: Dict[str, List[HistoryPoint]]
