from sqlalchemy import Column, Float, Index, Integer, String

from crypto_tracker.database import Base, UTCDateTime, utcnow


class PriceHistory(Base):
    __tablename__ = "price_history"
    __table_args__ = (Index("ix_price_history_symbol_timestamp", "symbol", "timestamp"),)

    id = Column(Integer, primary_key=True)
    symbol = Column(String, nullable=False)  # lowercase ticker, e.g. 'btc'
    price = Column(Float, nullable=False)  # USD
    timestamp = Column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<PriceHistory {self.symbol} {self.price} @ {self.timestamp}>"
