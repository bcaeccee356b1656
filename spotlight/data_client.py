"""
Finnhub market data client plus the cached feeds the dashboard polls.

Feeds and cache keys:
  most_active_snapshot / gainers_snapshot / losers_snapshot -> list[StockRow]
  profile:<SYMBOL>                                          -> CompanyProfile
  news:<category>                                           -> list[NewsArticle]

Notes / Pitfalls:
- Free tier is 60 calls/min; every outbound call goes through RateLimiter.wait().
- Finnhub has no screener endpoint on the free tier, so screeners are mock rows.
- On HTTP 429 or a network error we fall back to mock data, like the screeners.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, TypeVar

import httpx

from spotlight.cache import TTLCache
from spotlight.errors import DataSourceError
from spotlight.limiter import RateLimiter
from spotlight.logger import AppLogger
from spotlight.observability import CACHE_ENTRIES, CACHE_LOOKUPS, UPSTREAM_CALLS
from spotlight.schemas import CompanyProfile, NewsArticle, StockRow
from spotlight.utils import format_news_time

DEFAULT_BASE_URL = "https://finnhub.io/api/v1"

T = TypeVar("T")

SCREENER_CACHE_KEYS = {
    "most_active": "most_active_snapshot",
    "gainers": "gainers_snapshot",
    "losers": "losers_snapshot",
}

# --------------------------------------------------------------------------------------
# Mock data
# --------------------------------------------------------------------------------------
_MOCK_ROWS = [
    StockRow(ticker="AAPL", name="Apple Inc.", price=172.28, high=173.05, low=170.12, volume=52, change=-0.54),
    StockRow(ticker="GOOGL", name="Alphabet Inc.", price=136.99, high=137.50, low=135.20, volume=25, change=0.89),
    StockRow(ticker="MSFT", name="Microsoft Corporation", price=370.95, high=372.10, low=368.45, volume=30, change=1.23),
    StockRow(ticker="AMZN", name="Amazon.com, Inc.", price=134.26, high=135.10, low=133.00, volume=40, change=-1.10),
    StockRow(ticker="TSLA", name="Tesla, Inc.", price=234.86, high=238.90, low=232.50, volume=60, change=2.50),
]

_MOCK_PROFILES = {
    "AAPL": ("Apple Inc.", "Technology Hardware, Storage & Peripherals", "apple.com"),
    "MSFT": ("Microsoft Corporation", "Systems Software", "microsoft.com"),
    "GOOGL": ("Alphabet Inc.", "Interactive Media & Services", "google.com"),
    "TSLA": ("Tesla, Inc.", "Automobiles", "tesla.com"),
}

# (headline, source, url, hours ago)
_MOCK_NEWS: dict[str, list[tuple[str, str, str, float]]] = {
    "general": [
        ("Stock Market Reaches New Highs Amid Economic Optimism", "Financial Times", "https://example.com/news1", 0),
        ("Federal Reserve Maintains Interest Rates", "Bloomberg", "https://example.com/news3", 2),
        ("Global Markets Show Strong Recovery Signs", "Reuters", "https://example.com/news4", 3),
    ],
    "tech": [
        ("Tech Giants Report Strong Quarterly Earnings", "TechCrunch", "https://example.com/tech1", 1),
        ("AI Innovation Drives Tech Sector Growth", "Wired", "https://example.com/tech2", 2),
        ("Cloud Computing Revenue Surges 40%", "Ars Technica", "https://example.com/tech3", 4),
    ],
    "finance": [
        ("Banking Sector Shows Resilience in Q4", "Wall Street Journal", "https://example.com/fin1", 0.5),
        ("Cryptocurrency Market Volatility Continues", "CoinDesk", "https://example.com/fin2", 1),
        ("Corporate Bond Yields Rise Amid Inflation Concerns", "Financial Times", "https://example.com/fin3", 3),
    ],
}


def mock_screener(signal: str, limit: int) -> list[StockRow]:
    rows = [r.model_copy() for r in _MOCK_ROWS]
    if signal == "gainers":
        rows.sort(key=lambda r: r.change, reverse=True)
    elif signal == "losers":
        rows.sort(key=lambda r: r.change)
    return rows[:limit]


def mock_profile(symbol: str) -> CompanyProfile:
    sym = symbol.upper()
    name, industry, domain = _MOCK_PROFILES.get(
        sym, (f"{sym} Corporation", "Technology", f"{sym.lower()}.com")
    )
    return CompanyProfile(
        ticker=sym,
        name=name,
        exchange="NYSE" if "A" <= sym[:1] <= "M" else "NASDAQ",
        industry=industry,
        weburl=f"https://www.{domain}",
        logo=f"https://logo.clearbit.com/{domain}",
    )


def mock_news(category: str, limit: int) -> list[NewsArticle]:
    now = time.time()
    items = _MOCK_NEWS.get(category, _MOCK_NEWS["general"])
    out = []
    for i, (headline, source, url, hours_ago) in enumerate(items[:limit]):
        ts = int(now - hours_ago * 3600)
        out.append(
            NewsArticle(
                category=category,
                datetime=ts,
                headline=headline,
                id=i + 1,
                source=source,
                url=url,
                time=format_news_time(ts),
            )
        )
    return out


# --------------------------------------------------------------------------------------
# Finnhub REST client
# --------------------------------------------------------------------------------------
class FinnhubClient:
    """Thin synchronous client; each request waits on the shared limiter first."""

    def __init__(
        self,
        api_key: str,
        limiter: RateLimiter,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._limiter = limiter
        self._http = httpx.Client(
            base_url=base_url,
            headers={"X-Finnhub-Token": api_key},
            timeout=timeout,
            transport=transport,
        )

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        self._limiter.wait()
        try:
            r = self._http.get(path, params=params)
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPStatusError as e:
            UPSTREAM_CALLS.labels(endpoint=path, outcome="http_error").inc()
            raise DataSourceError(
                f"finnhub {path} returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            UPSTREAM_CALLS.labels(endpoint=path, outcome="network_error").inc()
            raise DataSourceError(f"finnhub {path} request failed: {e}") from e
        except ValueError as e:
            UPSTREAM_CALLS.labels(endpoint=path, outcome="bad_payload").inc()
            raise DataSourceError(f"finnhub {path} returned invalid JSON") from e
        UPSTREAM_CALLS.labels(endpoint=path, outcome="ok").inc()
        return data

    def company_profile(self, symbol: str) -> CompanyProfile:
        sym = symbol.upper()
        data = self._get("/stock/profile2", {"symbol": sym})
        # unknown symbols come back as {}
        if not isinstance(data, dict) or not data.get("name"):
            raise DataSourceError(f"no company profile for {sym}", status_code=404)
        data.setdefault("ticker", sym)
        return CompanyProfile.model_validate(data)

    def market_news(self, category: str = "general", limit: int = 10) -> list[NewsArticle]:
        data = self._get("/news", {"category": category})
        if not isinstance(data, list):
            raise DataSourceError(f"unexpected news payload for {category}")
        articles: list[NewsArticle] = []
        for raw in data[:limit]:
            if not isinstance(raw, dict) or not raw.get("headline"):
                continue
            article = NewsArticle.model_validate(raw)
            if article.datetime:
                article.time = format_news_time(article.datetime)
            articles.append(article)
        return articles

    def close(self) -> None:
        self._http.close()


def _should_fall_back(err: DataSourceError) -> bool:
    # rate limited or unreachable -> mock; anything else is a real failure
    return err.status_code is None or err.status_code == 429


# --------------------------------------------------------------------------------------
# Cached feeds
# --------------------------------------------------------------------------------------
class MarketData:
    """The dashboard's feeds, each read through its own TTL cache."""

    def __init__(
        self,
        client: FinnhubClient | None,
        logger: AppLogger,
        ttl_seconds: float,
        ticker_limit: int = 5,
        news_limit: int = 10,
        cache_clock=None,
    ) -> None:
        self.client = client
        self.logger = logger
        self.ttl = float(ttl_seconds)
        self.ticker_limit = ticker_limit
        self.news_limit = news_limit
        clock_kw = {"clock": cache_clock} if cache_clock is not None else {}
        self.screeners: TTLCache[list[StockRow]] = TTLCache(**clock_kw)
        self.profiles: TTLCache[CompanyProfile] = TTLCache(**clock_kw)
        self.news_cache: TTLCache[list[NewsArticle]] = TTLCache(**clock_kw)

    def _read_through(self, cache: TTLCache[T], key: str, feed: str, fetch: Callable[[], T]) -> tuple[T, bool]:
        """get_or_set wrapper that counts hits/misses. Returns (value, hit)."""
        missed = False

        def load() -> T:
            nonlocal missed
            missed = True
            return fetch()

        value = cache.get_or_set(key, self.ttl, load)
        CACHE_LOOKUPS.labels(feed=feed, result="miss" if missed else "hit").inc()
        CACHE_ENTRIES.labels(feed=feed).set(len(cache))
        return value, not missed

    def screener(self, signal: str) -> list[StockRow]:
        if signal not in SCREENER_CACHE_KEYS:
            raise ValueError(f"unsupported screener: {signal}")

        def fetch() -> list[StockRow]:
            self.logger.infof("Fetching fresh data for %s", signal)
            return mock_screener(signal, self.ticker_limit)

        rows, hit = self._read_through(self.screeners, SCREENER_CACHE_KEYS[signal], signal, fetch)
        if hit:
            self.logger.infof("Using cached data for %s with %d items", signal, len(rows))
        else:
            self.logger.infof(
                "Fetched %d items for %s, cached for %d seconds", len(rows), signal, self.ttl
            )
        return rows

    def profile(self, symbol: str) -> CompanyProfile:
        sym = symbol.upper()

        def fetch() -> CompanyProfile:
            self.logger.infof("Fetching fresh profile data for %s", sym)
            if self.client is None:
                return mock_profile(sym)
            try:
                return self.client.company_profile(sym)
            except DataSourceError as e:
                if not _should_fall_back(e):
                    self.logger.errorf("Failed to fetch profile for %s: %s", sym, e)
                    raise
                self.logger.errorf("Finnhub unavailable for %s (%s), serving mock profile", sym, e)
                return mock_profile(sym)

        profile, hit = self._read_through(self.profiles, f"profile:{sym}", "profile", fetch)
        if hit:
            self.logger.infof("Using cached profile data for %s", sym)
        else:
            self.logger.infof("Cached profile data for %s", sym)
        return profile

    def news(self, category: str = "general") -> list[NewsArticle]:
        cat = (category or "general").lower()

        def fetch() -> list[NewsArticle]:
            self.logger.infof("Fetching fresh news data for %s", cat)
            if self.client is None:
                return mock_news(cat, self.news_limit)
            try:
                return self.client.market_news(cat, self.news_limit)
            except DataSourceError as e:
                if not _should_fall_back(e):
                    self.logger.errorf("Failed to fetch news for %s: %s", cat, e)
                    raise
                self.logger.errorf("Finnhub unavailable for news %s (%s), serving mock news", cat, e)
                return mock_news(cat, self.news_limit)

        articles, hit = self._read_through(self.news_cache, f"news:{cat}", "news", fetch)
        if hit:
            self.logger.infof("Using cached news data for %s with %d articles", cat, len(articles))
        else:
            self.logger.infof("Cached %d news articles for %s", len(articles), cat)
        return articles

    def close(self) -> None:
        for cache in (self.screeners, self.profiles, self.news_cache):
            cache.clear()
        if self.client is not None:
            self.client.close()
