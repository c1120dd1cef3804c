from sqlalchemy import Column, Integer, String

from crypto_tracker.database import Base, UTCDateTime, utcnow


class Favorite(Base):
    __tablename__ = "favorites"

    id = Column(Integer, primary_key=True)
    symbol = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Favorite {self.symbol} ({self.name})>"
