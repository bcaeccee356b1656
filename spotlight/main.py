# spotlight/main.py
from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse

from spotlight.config import Settings, load_settings
from spotlight.data_client import FinnhubClient, MarketData
from spotlight.errors import ConfigError
from spotlight.limiter import RateLimiter
from spotlight.logger import AppLogger
from spotlight.logging_conf import setup_logging

# --- Observability ---
from spotlight.observability import metrics_endpoint, timing_middleware

# --- Routers ---
from spotlight.routers import data, logs
from spotlight.rotation import LogRotator
from spotlight.templating import templates
from spotlight.version import service_version_payload


def build_logger(settings: Settings) -> AppLogger:
    rotator = LogRotator(
        settings.log_path,
        max_size=settings.log_max_size_bytes,
        max_age=settings.log_max_age_seconds,
        max_files=settings.log_max_files,
    )
    return AppLogger(
        settings.log_path,
        rotator,
        level=settings.log_level.upper(),
        console=settings.log_console,
        json_console=settings.log_json,
        check_interval=settings.log_check_interval_seconds,
    )


def build_market_data(settings: Settings, logger: AppLogger) -> MarketData:
    limiter = RateLimiter(settings.rate_limit_seconds)
    client = FinnhubClient(
        settings.finnhub_api_key,
        limiter,
        base_url=settings.finnhub_base_url,
        timeout=settings.http_timeout_seconds,
    )
    return MarketData(
        client,
        logger,
        ttl_seconds=settings.cache_ttl_seconds,
        ticker_limit=settings.ticker_limit,
    )


def create_app(
    settings: Settings,
    *,
    logger: AppLogger | None = None,
    market_data: MarketData | None = None,
) -> FastAPI:
    """Wire one logger, one limiter and the feed caches into a FastAPI app."""
    logger = logger or build_logger(settings)
    market_data = market_data or build_market_data(settings, logger)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("App starting...")
        yield
        logger.info("Shutting down...")
        market_data.close()
        logger.close()

    app = FastAPI(title="Stock Spotlight", version=service_version_payload()["service_version"], lifespan=lifespan)
    app.state.settings = settings
    app.state.logger = logger
    app.state.market_data = market_data

    app.include_router(data.router)
    app.include_router(logs.router)
    app.middleware("http")(timing_middleware)

    @app.get("/", response_class=HTMLResponse)
    def index(request: Request):
        logger.info("Serving UI /")
        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "polling_interval": settings.polling_interval_seconds,
                "default_symbol": "AAPL",
            },
        )

    @app.get("/healthz", response_class=PlainTextResponse)
    def healthz():
        return "OK\n"

    @app.get("/version")
    def version():
        return service_version_payload()

    @app.get("/metrics")
    def metrics():
        return metrics_endpoint()

    return app


def get_app() -> FastAPI:
    """uvicorn factory: ``uvicorn spotlight.main:get_app --factory``."""
    settings = load_settings()
    setup_logging(settings.log_level, json_logs=settings.log_json)
    return create_app(settings)


def main() -> None:
    import uvicorn

    try:
        settings = load_settings()
    except ConfigError as e:
        logging.getLogger("spotlight").critical("Failed to load config: %s", e)
        sys.exit(1)
    setup_logging(settings.log_level, json_logs=settings.log_json)

    port = int(os.getenv("PORT", "8080"))
    app = create_app(settings)
    app.state.logger.infof("Server running at http://localhost:%d", port)
    uvicorn.run(app, host="0.0.0.0", port=port, log_config=None)


if __name__ == "__main__":
    main()
