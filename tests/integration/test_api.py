"""Integration tests for the token API endpoints."""
import time
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session # type: ignore

from app.core.config import DEFAULT_TOKEN_ADDRESSES, settings
from app.core.exceptions import RepositoryError, SourceUnavailable
from app.core.time_buckets import hour_index
from app.crud.token import upsert_price_point, upsert_token
from app.main import app
from app.schemas.token import HourlyPrice, TokenMetadata

WBTC_ADDRESS = DEFAULT_TOKEN_ADDRESSES["WBTC"]

WBTC_METADATA = TokenMetadata(
    id=WBTC_ADDRESS, name="Wrapped BTC", symbol="WBTC",
    totalSupply=18240, volumeUSD=120242943725.3597, decimals=8,
)

def store_week_of_prices(db: Session):
    """Helper storing WBTC with one price point per hour of the last week."""
    upsert_token(db, WBTC_ADDRESS, WBTC_METADATA)
    current = hour_index(time.time())
    for index in range(current - 167, current + 1):
        upsert_price_point(db, f"{WBTC_ADDRESS}-{index}", WBTC_ADDRESS, HourlyPrice(
            open=100, close=101, high=102, low=99, priceUSD=101, periodStartUnix=index * 3600))
    return current

def test_root(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    assert "Uniswap Token Sync API" in response.json()["message"]

def test_get_token(client: TestClient, db_session: Session):
    upsert_token(db_session, WBTC_ADDRESS, WBTC_METADATA)

    response = client.get("/api/v1/tokens/WBTC")

    assert response.status_code == 200
    body = response.json()
    assert body["token_address"] == WBTC_ADDRESS
    assert body["name"] == "Wrapped BTC"
    assert body["total_supply"] == 18240
    assert body["volume_usd"] == 120242943725.3597
    assert body["decimals"] == 8

def test_get_token_not_synced_yet(client: TestClient):
    response = client.get("/api/v1/tokens/GNO")
    assert response.status_code == 404
    assert response.json()["detail"] == "Token not found"

def test_get_unsupported_token(client: TestClient):
    response = client.get("/api/v1/tokens/XYZ")
    assert response.status_code == 403
    assert response.json()["detail"] == "Token not supported"

def test_get_token_history(client: TestClient, db_session: Session):
    store_week_of_prices(db_session)

    response = client.get("/api/v1/tokens/WBTC/data?timeUnit=24")

    assert response.status_code == 200
    body = response.json()
    assert body["interval_hours"] == 24
    assert set(body["series"]) == {"open", "close", "high", "low", "priceUSD"}
    assert len(body["series"]["open"]) == 7
    timestamp, metric, value = body["series"]["high"][0]
    assert metric == "high"
    assert value == 102
    assert len(timestamp) == len("2024-01-01T00:00:00")

def test_get_token_history_defaults_to_hourly(client: TestClient, db_session: Session):
    store_week_of_prices(db_session)

    response = client.get("/api/v1/tokens/WBTC/data")

    assert response.status_code == 200
    assert len(response.json()["series"]["close"]) == 168

def test_get_token_history_rejects_bad_interval(client: TestClient):
    response = client.get("/api/v1/tokens/WBTC/data?timeUnit=0")
    assert response.status_code == 422

def test_get_history_unsupported_token(client: TestClient):
    response = client.get("/api/v1/tokens/XYZ/data?timeUnit=1")
    assert response.status_code == 403
    assert response.json()["detail"] == "Token not supported"

def test_get_latest_price(client: TestClient, db_session: Session):
    response = client.get("/api/v1/tokens/WBTC/latest")
    assert response.status_code == 404

    current = store_week_of_prices(db_session)

    response = client.get("/api/v1/tokens/WBTC/latest")
    assert response.status_code == 200
    assert response.json()["id"] == f"{WBTC_ADDRESS}-{current}"
    assert response.json()["price_usd"] == 101

def test_remote_token_metadata(client: TestClient, mocker):
    mock_fetch = mocker.patch.object(app.state.uniswap_client, "fetch_token", AsyncMock(return_value=WBTC_METADATA))

    response = client.get("/api/v1/tokens/WBTC/remote")

    assert response.status_code == 200
    assert response.json()["totalSupply"] == 18240
    assert response.json()["volumeUSD"] == 120242943725.3597
    assert "total_supply" not in response.json()
    mock_fetch.assert_awaited_once_with("WBTC")

def test_remote_token_metadata_documents_field_names(client: TestClient):
    operation = client.get("/openapi.json").json()["paths"]["/api/v1/tokens/{symbol}/remote"]["get"]
    assert "camelCase" in operation["description"]

def test_remote_token_metadata_unsupported(client: TestClient):
    response = client.get("/api/v1/tokens/XYZ/remote")
    assert response.status_code == 403
    assert response.json()["detail"] == "Token not supported"

def test_remote_token_metadata_source_down(client: TestClient, mocker):
    mocker.patch.object(app.state.uniswap_client, "fetch_token",
                        AsyncMock(side_effect=SourceUnavailable("Subgraph request failed", 500, "Error")))

    response = client.get("/api/v1/tokens/WBTC/remote")

    assert response.status_code == 502
    assert response.json()["upstream_status"] == 500
    assert response.json()["upstream_body"] == "Error"

def test_repository_error_is_500(client: TestClient, mocker):
    mocker.patch("app.services.query_service.get_token", side_effect=RepositoryError("boom"))

    response = client.get("/api/v1/tokens/WBTC")

    assert response.status_code == 500
    assert response.json()["detail"] == "Database error"

def test_trigger_sync(client: TestClient, mocker):
    mock_sync = mocker.patch.object(app.state.synchronizer, "sync_symbols", AsyncMock(return_value={}))

    response = client.post("/api/v1/tokens/wbtc/sync")

    assert response.status_code == 202
    assert "WBTC" in response.json()["message"]
    mock_sync.assert_called_once_with(["WBTC"])

def test_trigger_sync_unsupported(client: TestClient, mocker):
    mock_sync = mocker.patch.object(app.state.synchronizer, "sync_symbols", AsyncMock())

    response = client.post("/api/v1/tokens/XYZ/sync")

    assert response.status_code == 403
    mock_sync.assert_not_called()

def test_startup_starts_sync_loop(db_engine, monkeypatch, mocker):
    monkeypatch.setattr(settings, "SYNC_ON_STARTUP", True)
    monkeypatch.setattr("app.main.engine", db_engine)
    mock_loop = mocker.patch("app.main.start_sync_loop", AsyncMock())

    with TestClient(app):
        pass

    mock_loop.assert_called_once()
    args = mock_loop.call_args.args
    assert args[1] == settings.SYNC_SYMBOLS
    assert args[2] == settings.SYNC_INTERVAL_MINUTES
