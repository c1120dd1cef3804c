from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CurrencyPrices(BaseModel):
    model_config = ConfigDict(frozen=True)

    usd: Optional[float] = None
    eur: Optional[float] = None
    gbp: Optional[float] = None


class PriceSnapshot(BaseModel):
    """Point-in-time market data for one coin, as served by GET /price."""

    model_config = ConfigDict(frozen=True)

    id: str  # coin id in the remote namespace, e.g. 'bitcoin'
    symbol: str
    name: str
    image: Optional[str] = None
    current_price: CurrencyPrices
    market_cap: Optional[float] = None
    price_change_24h: Optional[float] = None  # percent
    last_updated: Optional[str] = None


class HistoryPoint(BaseModel):
    timestamp: int  # epoch ms
    price: float


class PriceHistoryResponse(BaseModel):
    symbol: str
    data: List[HistoryPoint]


class FavoriteCreate(BaseModel):
    # optional so missing fields surface as 400 rather than 422
    symbol: Optional[str] = None
    name: Optional[str] = None


class FavoriteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    symbol: str
    name: str
    created_at: datetime


class ListMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int
    per_page: int = Field(serialization_alias="perPage")
    count: int


class CryptocurrencyListResponse(BaseModel):
    success: bool = True
    data: list
    meta: ListMeta
