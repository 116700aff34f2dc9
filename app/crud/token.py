"""CRUD operations for tokens and their hourly price data."""
import logging
from typing import List, Optional
from sqlalchemy.orm import Session # type: ignore
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from app.core.exceptions import RepositoryError, ValidationError
from app.models.token import Token, TokenPriceData
from app.schemas.token import HourlyPrice, TokenMetadata

logger = logging.getLogger(__name__)

PRICE_COLUMNS = ("open", "close", "high", "low", "price_usd", "period_start_unix")

def upsert_token(db: Session, token_address: str, metadata: TokenMetadata) -> Token:
    """
    Create the token if it is not stored yet, otherwise refresh its mutable fields.
    name, symbol and decimals never change after creation.
    """
    if metadata is None or not token_address:
        raise ValidationError("Token data is required")
    try:
        token = db.query(Token).filter(Token.token_address == token_address).first()
        if token:
            token.total_supply = metadata.total_supply
            token.volume_usd = metadata.volume_usd
            logger.debug(f"Token {token.symbol} already exists, updated supply and volume.")
        else:
            token = Token(
                token_address=token_address,
                name=metadata.name,
                symbol=metadata.symbol,
                total_supply=metadata.total_supply,
                volume_usd=metadata.volume_usd,
                decimals=metadata.decimals,
            )
            db.add(token)
            logger.info(f"Token created: {metadata.symbol} at {token_address}")
        db.commit()
        db.refresh(token)
        return token
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save token {token_address}: {e}", exc_info=True)
        raise RepositoryError(f"Failed to save token {token_address}") from e

def upsert_price_point(db: Session, point_id: str, token_address: str, price: HourlyPrice) -> TokenPriceData:
    """
    Insert the hourly price point or overwrite the stored one with the same id.
    Uses ON CONFLICT DO UPDATE on SQLite and PostgreSQL, Session.merge elsewhere.
    """
    if price is None or not point_id:
        raise ValidationError("Token price data is required")

    values = {
        "id": point_id,
        "token_address": token_address,
        "open": price.open,
        "close": price.close,
        "high": price.high,
        "low": price.low,
        "price_usd": price.price_usd,
        "period_start_unix": price.period_start_unix,
    }
    try:
        dialect = db.bind.dialect.name
        if dialect in ('sqlite', 'postgresql'):
            insert = sqlite_insert if dialect == 'sqlite' else postgresql_insert
            stmt = insert(TokenPriceData).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=['id'],
                set_={column: stmt.excluded[column] for column in ("token_address",) + PRICE_COLUMNS},
            )
            db.execute(stmt)
        else:
            # Fallback for other dialects, one round trip more
            db.merge(TokenPriceData(**values))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save token price {point_id}: {e}", exc_info=True)
        raise RepositoryError(f"Failed to save token price {point_id}") from e
    return get_price_point(db, point_id)

def get_price_point(db: Session, point_id: str) -> Optional[TokenPriceData]:
    """Get a price point by its composite id."""
    try:
        return db.query(TokenPriceData).filter(TokenPriceData.id == point_id).populate_existing().first()
    except SQLAlchemyError as e:
        logger.error(f"Failed to read token price {point_id}: {e}", exc_info=True)
        raise RepositoryError(f"Failed to read token price {point_id}") from e

def get_token(db: Session, token_address: str) -> Optional[Token]:
    """Get a token by its address."""
    try:
        return db.query(Token).filter(Token.token_address == token_address).first()
    except SQLAlchemyError as e:
        logger.error(f"Failed to read token {token_address}: {e}", exc_info=True)
        raise RepositoryError(f"Failed to read token {token_address}") from e

def list_prices(db: Session, token_address: str, since_unix: int) -> List[TokenPriceData]:
    """Get the price points of a token starting at or after since_unix, oldest first."""
    try:
        return db.query(TokenPriceData).filter(
            TokenPriceData.token_address == token_address,
            TokenPriceData.period_start_unix >= since_unix
        ).order_by(TokenPriceData.period_start_unix).all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to list prices for {token_address}: {e}", exc_info=True)
        raise RepositoryError(f"Failed to list prices for {token_address}") from e

def get_latest_price(db: Session, token_address: str) -> Optional[TokenPriceData]:
    """Get the most recent stored hour of a token."""
    try:
        return db.query(TokenPriceData).filter(
            TokenPriceData.token_address == token_address
        ).order_by(TokenPriceData.period_start_unix.desc()).first()
    except SQLAlchemyError as e:
        logger.error(f"Failed to read latest price for {token_address}: {e}", exc_info=True)
        raise RepositoryError(f"Failed to read latest price for {token_address}") from e
