from sqlalchemy import Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from app.core.db import Base

class Token(Base):
    __tablename__ = "tokens"

    token_address = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    symbol = Column(String, index=True, nullable=False)
    total_supply = Column(Float, nullable=False) # refreshed on every sync
    volume_usd = Column(Float, nullable=False) # refreshed on every sync
    decimals = Column(Integer, nullable=False)

    prices = relationship("TokenPriceData", back_populates="token")

    def __repr__(self):
        return f"<Token(symbol='{self.symbol}', address='{self.token_address}', total_supply={self.total_supply})>"


class TokenPriceData(Base):
    __tablename__ = "token_price_data"

    id = Column(String, primary_key=True) # "{token_address}-{hour_index}", the subgraph tokenHourData id
    token_address = Column(String, ForeignKey("tokens.token_address"), index=True, nullable=False)
    open = Column(Float, nullable=False)
    close = Column(Float, nullable=False)
    high = Column(Float, nullable=False)
    low = Column(Float, nullable=False)
    price_usd = Column(Float, nullable=False)
    period_start_unix = Column(Integer, index=True, nullable=False)

    token = relationship("Token", back_populates="prices")

    def __repr__(self):
        return f"<TokenPriceData(id='{self.id}', period_start_unix={self.period_start_unix}, price_usd={self.price_usd})>"
