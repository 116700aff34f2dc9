"""FastAPI dependencies resolving the services built in the application lifespan."""
from fastapi import Request

from app.services.query_service import TokenQueryService
from app.services.sync_service import TokenSynchronizer
from app.services.uniswap_client import UniswapSubgraphClient


def get_query_service(request: Request) -> TokenQueryService:
    return request.app.state.query_service


def get_uniswap_client(request: Request) -> UniswapSubgraphClient:
    return request.app.state.uniswap_client


def get_synchronizer(request: Request) -> TokenSynchronizer:
    return request.app.state.synchronizer
