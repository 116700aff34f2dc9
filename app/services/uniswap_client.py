"""
Client for the Uniswap v3 subgraph.

Every call is a single GraphQL POST; the subgraph has no batch query for hour
data, so a 7-day backfill issues one request per hour.
"""
import json
import logging
from contextlib import asynccontextmanager
from typing import Mapping, Optional

import httpx
from aiolimiter import AsyncLimiter
from pydantic import ValidationError as PydanticValidationError

from app.core.config import resolve_token_address
from app.core.exceptions import SourceUnavailable, TokenNotSupported
from app.core.time_buckets import price_point_id
from app.schemas.token import HourlyPrice, HourlyPriceResult, TokenMetadata, TokenMetadataResult

logger = logging.getLogger(__name__)

TOKEN_QUERY = """
query Token($id: ID!) {
  token(id: $id) {
    id
    name
    symbol
    totalSupply
    volumeUSD
    decimals
  }
}
"""

TOKEN_HOUR_DATA_QUERY = """
query TokenHourData($id: ID!) {
  tokenHourData(id: $id) {
    periodStartUnix
    open
    close
    high
    low
    priceUSD
  }
}
"""


class UniswapSubgraphClient:
    """Fetches token metadata and hourly OHLC data from the subgraph."""

    def __init__(
        self,
        endpoint_url: str,
        token_addresses: Mapping[str, str],
        timeout: float = 30,
        max_requests_per_second: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint_url = endpoint_url
        self.token_addresses = token_addresses
        self.timeout = timeout
        # No limiter configured means the backfill fan-out is not capped
        self._limiter = AsyncLimiter(max_requests_per_second, 1) if max_requests_per_second else None
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(max_connections=None, max_keepalive_connections=20),
            )
        return self._client

    async def aclose(self):
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @asynccontextmanager
    async def _rate_limited(self):
        if self._limiter is None:
            yield
        else:
            async with self._limiter:
                yield

    def resolve_address(self, symbol: str) -> str:
        """Map a ticker to its token address, raising TokenNotSupported for unknown tickers."""
        try:
            return resolve_token_address(self.token_addresses, symbol)
        except TokenNotSupported:
            logger.warning(f"Token {symbol} is not supported.")
            raise

    async def _post_query(self, query: str, variables: dict) -> dict:
        payload = {"query": query, "variables": variables}
        logger.debug(f"Subgraph request: {json.dumps(variables)}")
        client = self._get_client()
        try:
            async with self._rate_limited():
                response = await client.post(self.endpoint_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error from subgraph for {variables}: Status {e.response.status_code} - {e.response.text}")
            raise SourceUnavailable("Subgraph request failed", e.response.status_code, e.response.text) from e
        except httpx.RequestError as e:
            logger.error(f"Network error calling subgraph for {variables}: {e}")
            raise SourceUnavailable(f"Network error calling subgraph: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Subgraph returned a non-JSON body for {variables}.")
            raise SourceUnavailable("Subgraph returned an invalid body", response.status_code, response.text) from e

    @staticmethod
    def _raise_for_graphql_errors(result, body: dict):
        if result.errors:
            messages = "; ".join(error.message for error in result.errors)
            logger.error(f"Subgraph query returned errors: {messages}")
            raise SourceUnavailable(f"Subgraph query failed: {messages}", 200, json.dumps(body))

    async def fetch_token(self, symbol: str) -> TokenMetadata:
        """Resolve the ticker and fetch the token's current metadata."""
        return await self.fetch_token_metadata(self.resolve_address(symbol))

    async def fetch_token_metadata(self, token_address: str) -> TokenMetadata:
        """Fetch name, symbol, totalSupply, volumeUSD and decimals of a token."""
        body = await self._post_query(TOKEN_QUERY, {"id": token_address})
        try:
            result = TokenMetadataResult.model_validate(body)
        except PydanticValidationError as e:
            raise SourceUnavailable("Unexpected token response from subgraph", 200, json.dumps(body)) from e
        self._raise_for_graphql_errors(result, body)
        if result.token is None:
            logger.warning(f"Subgraph has no token with address {token_address}.")
            raise TokenNotSupported(token_address, "Token not found in subgraph")
        logger.info(f"Fetched token {result.token.symbol}: supply {result.token.total_supply}, volume {result.token.volume_usd}")
        return result.token

    async def fetch_hourly_price(self, token_address: str, index: int) -> Optional[HourlyPrice]:
        """Fetch the OHLC data of one hour bucket, or None when the subgraph has no entry for it."""
        point_id = price_point_id(token_address, index)
        body = await self._post_query(TOKEN_HOUR_DATA_QUERY, {"id": point_id})
        try:
            result = HourlyPriceResult.model_validate(body)
        except PydanticValidationError as e:
            raise SourceUnavailable(f"Unexpected hour data response for {point_id}", 200, json.dumps(body)) from e
        self._raise_for_graphql_errors(result, body)
        if result.price is None:
            logger.debug(f"No hour data in subgraph for {point_id}.")
        return result.price
