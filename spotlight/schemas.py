from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# --- Screener rows (most active / gainers / losers) ---
class StockRow(BaseModel):
    ticker: str
    name: str
    price: float
    high: float
    low: float
    volume: float = 0.0
    change: float = 0.0


# --- Company profile (Finnhub /stock/profile2) ---
class CompanyProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    ticker: str
    name: str
    exchange: str = ""
    industry: str = Field("", alias="finnhubIndustry")
    weburl: str = ""
    logo: str = ""


# --- News (Finnhub /news) ---
class NewsArticle(BaseModel):
    category: str = ""
    datetime: int = 0
    headline: str
    id: int = 0
    image: str = ""
    related: str = ""
    source: str = ""
    summary: str = ""
    url: str = ""
    time: str = ""  # formatted for display


# --- Log management payloads ---
class LogStatusResponse(BaseModel):
    currentSize: str
    currentAge: str
    rotatedFiles: int
    totalSize: str
    maxSize: str
    maxAge: str
    maxFiles: int
    status: Literal["healthy"] = "healthy"


class ActionResponse(BaseModel):
    status: Literal["success"] = "success"
    message: str
