# spotlight/routers/data.py
# HTML fragments polled by the dashboard (hx-get every polling_interval_seconds).
from __future__ import annotations

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import HTMLResponse

from spotlight.data_client import MarketData
from spotlight.errors import DataSourceError
from spotlight.logger import AppLogger
from spotlight.templating import templates
from spotlight.utils import now_hms

router = APIRouter(prefix="/data", tags=["data"])

DEFAULT_PROFILE_SYMBOL = "AAPL"

_SCREENER_TITLES = {
    "most_active": "Most Active",
    "gainers": "Top Gainers",
    "losers": "Top Losers",
}


def _deps(request: Request) -> tuple[MarketData, AppLogger]:
    return request.app.state.market_data, request.app.state.logger


def _screener(request: Request, signal: str) -> HTMLResponse:
    market, logger = _deps(request)
    logger.infof("Request received for %s", signal)
    rows = market.screener(signal)
    return templates.TemplateResponse(
        request,
        "stock_table.html",
        {
            "title": _SCREENER_TITLES[signal],
            "signal": signal,
            "rows": rows,
            "has_data": bool(rows),
            "error_msg": "",
            "timestamp": now_hms(),
        },
    )


@router.get("/most-active", response_class=HTMLResponse)
def most_active(request: Request):
    return _screener(request, "most_active")


@router.get("/gainers", response_class=HTMLResponse)
def gainers(request: Request):
    return _screener(request, "gainers")


@router.get("/losers", response_class=HTMLResponse)
def losers(request: Request):
    return _screener(request, "losers")


@router.get("/profile", response_class=HTMLResponse)
def profile(request: Request, symbol: str = Query("", description="Ticker, e.g. AAPL")):
    market, logger = _deps(request)
    sym = symbol.strip().upper() or DEFAULT_PROFILE_SYMBOL
    logger.infof("Request received for company profile: %s", sym)

    try:
        prof = market.profile(sym)
    except DataSourceError as e:
        return templates.TemplateResponse(
            request,
            "company_profile.html",
            {"profile": None, "has_data": False, "error_msg": str(e), "timestamp": now_hms()},
            status_code=status.HTTP_502_BAD_GATEWAY,
        )
    return templates.TemplateResponse(
        request,
        "company_profile.html",
        {"profile": prof, "has_data": True, "error_msg": "", "timestamp": now_hms()},
    )


@router.get("/news", response_class=HTMLResponse)
def news(request: Request, category: str = Query("general")):
    market, logger = _deps(request)
    logger.infof("Request received for news: %s", category)

    try:
        articles = market.news(category)
    except DataSourceError as e:
        return templates.TemplateResponse(
            request,
            "news_feed.html",
            {"articles": [], "has_data": False, "error_msg": str(e), "timestamp": now_hms()},
            status_code=status.HTTP_502_BAD_GATEWAY,
        )
    return templates.TemplateResponse(
        request,
        "news_feed.html",
        {
            "articles": articles,
            "has_data": bool(articles),
            "error_msg": "",
            "timestamp": now_hms(),
        },
    )
