"""Module providing settings for the application"""
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Union
from pydantic.v1 import BaseSettings, validator
from app.core.exceptions import TokenNotSupported

DEFAULT_TOKEN_ADDRESSES = {
    "WBTC": "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599",
    "SHIB": "0x95ad61b0a150d79219dcf64e1e6cc01f0b64c4ce",
    "GNO": "0x6810e776880c02933d47db1b9fc05908e5386b96",
}

class Settings(BaseSettings):
    """Class representing settings for the application"""
    class Config:
        env_file = '.env'
        extra = 'ignore'

        @classmethod
        def parse_env_var(cls, field_name: str, raw_val: str):
            """Accept SYNC_SYMBOLS as a plain comma-separated string as well as JSON."""
            if field_name == "SYNC_SYMBOLS" and not raw_val.lstrip().startswith("["):
                return raw_val
            return cls.json_loads(raw_val)

    DATABASE_URL: str = "sqlite:///./token_sync.db"
    UNISWAP_SUBGRAPH_URL: str = "https://api.thegraph.com/subgraphs/name/uniswap/uniswap-v3"
    UNISWAP_REQUEST_TIMEOUT_SECONDS: float = 30
    UNISWAP_MAX_REQUESTS_PER_SECOND: Optional[float] = None  # None: backfill fan-out is uncapped
    TOKEN_ADDRESSES: Dict[str, str] = dict(DEFAULT_TOKEN_ADDRESSES)
    SYNC_SYMBOLS: List[str] = ["WBTC", "GNO", "SHIB"]
    SYNC_INTERVAL_MINUTES: int = 60
    SYNC_ON_STARTUP: bool = True
    HISTORY_WINDOW_DAYS: int = 7
    LOG_LEVEL: str = "INFO"
    LOG_FILE_PATH: str = "app.log"

    @validator("SYNC_SYMBOLS", pre=True)
    def split_sync_symbols(cls, v: Union[str, List[str]]) -> List[str]:
        """Allow SYNC_SYMBOLS to be a comma-separated string in env vars."""
        if isinstance(v, str):
            v = v.split(",")
        return [item.strip().upper() for item in v if item.strip()]

    @validator("TOKEN_ADDRESSES")
    def normalize_token_addresses(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Symbols are matched upper-case, addresses are stored lower-case like the subgraph ids."""
        return {symbol.strip().upper(): address.strip().lower() for symbol, address in v.items()}

    def get_token_addresses(self) -> Mapping[str, str]:
        """Read-only view of the symbol -> address table handed to the services."""
        return MappingProxyType(dict(self.TOKEN_ADDRESSES))

settings = Settings()

def resolve_token_address(token_addresses: Mapping[str, str], symbol: str) -> str:
    """Address of a ticker in the table, matched case-insensitively; TokenNotSupported otherwise."""
    address = token_addresses.get(symbol.upper()) if symbol else None
    if not address:
        raise TokenNotSupported(symbol)
    return address
