"""
FastAPI Main Application
Fund estimates, holdings valuation and DCA calculation in one service
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fund_valuation.config import settings
from fund_valuation.core.logging import setup_logging
from fund_valuation.domain.services.estimate_reconciler import EstimateReconciler
from fund_valuation.infrastructure.calendar.trading_calendar import FundTradingCalendar
from fund_valuation.infrastructure.market_data.eastmoney_provider import get_eastmoney_provider
from fund_valuation.infrastructure.store.fund_store import FundStore
from fund_valuation.infrastructure.store.kv_store import JsonFileStore
from fund_valuation.scheduler.scheduler import shutdown_scheduler, start_scheduler
from fund_valuation.services.dca_service import DcaService
from fund_valuation.services.valuation_poller import ValuationPoller

setup_logging(
    settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    max_bytes=settings.LOG_MAX_BYTES,
    backup_count=settings.LOG_BACKUP_COUNT,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Handles startup and shutdown of all services
    """
    # ===================
    # STARTUP
    # ===================
    logger.info("=" * 60)
    logger.info("🚀 Starting Fund Valuation Service")
    logger.info("=" * 60)

    # 1. User state
    logger.info("📂 Step 1/3: Loading fund store...")
    store = FundStore(JsonFileStore(settings.STORE_PATH))
    await store.load()
    logger.info(f"✅ Store loaded: {len(store.watchlist)} funds, {len(store.groups)} groups")

    # 2. Upstream client and services
    logger.info("🏗️  Step 2/3: Initializing services...")
    provider = get_eastmoney_provider()
    reconciler = EstimateReconciler(provider)
    poller = ValuationPoller(store, reconciler)
    trading_calendar = FundTradingCalendar(provider)

    app.state.provider = provider
    app.state.reconciler = reconciler
    app.state.fund_store = store
    app.state.poller = poller
    app.state.trading_calendar = trading_calendar
    app.state.dca_service = DcaService(trading_calendar)
    app.state.scheduler = None
    logger.info("✅ Services initialized")

    # 3. Background polling
    logger.info("🚀 Step 3/3: Starting background services...")
    if settings.SCHEDULER_ENABLED:
        try:
            app.state.scheduler = start_scheduler(poller)
        except Exception as e:
            logger.error(f"❌ Failed to start scheduler: {e}")
    else:
        logger.info("⏰ Scheduler disabled")

    logger.info(f"🎯 API Server: http://{settings.API_HOST}:{settings.API_PORT} (docs at /docs)")

    yield

    # ===================
    # SHUTDOWN
    # ===================
    logger.info("🛑 Shutting down Fund Valuation Service...")
    shutdown_scheduler()
    await provider.close()
    logger.info("👋 Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Fund Valuation Service",
    description="Intraday fund estimates, holdings valuation and DCA calculation",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Fund Valuation Service",
        "version": "1.0.0",
        "docs": "/docs",
    }


# Import and include routers
from fund_valuation.api.routes import dca, funds, health, portfolio

app.include_router(health.router, tags=["Health"])
app.include_router(funds.router, prefix="/api/v1/funds", tags=["Funds"])
app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["Portfolio"])
app.include_router(dca.router, prefix="/api/v1/dca", tags=["DCA"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("fund_valuation.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)
