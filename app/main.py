""" Main entry point for the FastAPI application, including startup and shutdown events, middleware, and API routes."""
import asyncio
import logging
from fastapi import FastAPI, HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.api import endpoints
from app.core.config import settings
from app.core.logging_config import setup_logging
from app.core.db import Base, SessionLocal, engine
from app.core.exceptions import RepositoryError, SourceUnavailable, TokenNotSupported, ValidationError
from app.models import token  # noqa: F401  registers the tables on Base.metadata
from app.services.query_service import TokenQueryService
from app.services.sync_service import TokenSynchronizer, start_sync_loop
from app.services.uniswap_client import UniswapSubgraphClient

# Set up logging first
setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup actions
    logger.info("Application startup initiated.")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured to exist.")
    except Exception as e:
        logger.critical(f"Failed to connect to database or create tables: {e}", exc_info=True)
        raise

    token_addresses = settings.get_token_addresses()
    client = UniswapSubgraphClient(
        settings.UNISWAP_SUBGRAPH_URL,
        token_addresses,
        timeout=settings.UNISWAP_REQUEST_TIMEOUT_SECONDS,
        max_requests_per_second=settings.UNISWAP_MAX_REQUESTS_PER_SECOND,
    )
    app.state.uniswap_client = client
    app.state.synchronizer = TokenSynchronizer(client, token_addresses, SessionLocal, settings.HISTORY_WINDOW_DAYS)
    app.state.query_service = TokenQueryService(token_addresses, settings.HISTORY_WINDOW_DAYS)

    sync_task = None
    if settings.SYNC_ON_STARTUP:
        logger.info(f"Starting background token sync for {settings.SYNC_SYMBOLS}.")
        sync_task = asyncio.create_task(
            start_sync_loop(app.state.synchronizer, settings.SYNC_SYMBOLS, settings.SYNC_INTERVAL_MINUTES)
        )
    logger.info("Application startup complete.")
    yield  # Application runs during this time

    # Shutdown actions
    if sync_task is not None:
        sync_task.cancel()
        try:
            await sync_task
        except asyncio.CancelledError:
            pass
    await client.aclose()
    logger.info("Application shutdown complete.")

app = FastAPI(
    title="Uniswap Token Sync API",
    description="Token metadata and hourly price history synced from the Uniswap v3 subgraph.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS Middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], # Adjust for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global Exception Handler for validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    logger.error(f"Request validation error for {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors())},
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Log HTTP errors by severity before returning them."""
    if exc.status_code >= 500:
        logger.error(f"HTTP Exception (Server Error) at {request.method} {request.url.path}: {exc.detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP Exception (Client Error) at {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )

@app.exception_handler(ValidationError)
async def payload_validation_handler(request, exc):
    logger.warning(f"Rejected request at {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

@app.exception_handler(TokenNotSupported)
async def token_not_supported_handler(request, exc):
    logger.warning(f"Unsupported token at {request.method} {request.url.path}: {exc.symbol}")
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": exc.message})

@app.exception_handler(SourceUnavailable)
async def source_unavailable_handler(request, exc):
    logger.error(f"Subgraph unavailable at {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": exc.message, "upstream_status": exc.status_code, "upstream_body": exc.body},
    )

@app.exception_handler(RepositoryError)
async def repository_error_handler(request, exc):
    logger.error(f"Database error at {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Database error"})

# Include API endpoints
app.include_router(endpoints.router, prefix="/api/v1", tags=["Tokens"])

@app.get("/")
async def root():
    """Root endpoint to check if the API is running."""
    logger.debug("Root endpoint accessed.")
    return {"message": "Welcome to the Uniswap Token Sync API. Check /docs for API documentation."}
