"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Logging — structured logging configured before anything else logs
  2. Lifespan manager — handles startup/shutdown (DB table creation, cleanup)
  3. CORS middleware — allows frontend origins to make cross-origin requests
  4. Exception handlers — maps domain errors to HTTP responses
  5. Router registration — mounts all API endpoint groups

Running locally:
    uvicorn canteen.main:app --reload
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import canteen.models  # noqa: F401  registers every table on Base.metadata
from canteen.config import settings
from canteen.database import Base, engine
from canteen.exceptions import register_exception_handlers
from canteen.logging_config import get_logger, setup_logging
from canteen.routers import admin, auth, me, menu, notifications, orders, reports, wallet

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      Creates all database tables if they don't exist. The parent
      directory of a SQLite database file is created if missing.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    # --- Startup ---
    if engine.dialect.name == "sqlite" and engine.url.database:
        os.makedirs(os.path.dirname(os.path.abspath(engine.url.database)), exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Canteen API started", version=settings.APP_VERSION, database=engine.dialect.name)
    yield
    # --- Shutdown ---
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Canteen ordering API: menu stock, student wallets, orders and pickup",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(me.router, prefix="/me", tags=["Profile"])
app.include_router(menu.router, prefix="/menu", tags=["Menu"])
app.include_router(wallet.router, prefix="/wallet", tags=["Wallet"])
app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
app.include_router(reports.router, prefix="/reports", tags=["Reports"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe for load balancers and orchestrators."""
    return {"status": "ok", "version": settings.APP_VERSION}
