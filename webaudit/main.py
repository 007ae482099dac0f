"""
FastAPI Application — entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from webaudit import __version__
from webaudit.config import settings
from webaudit.database import close_db, init_db
from webaudit.routes import router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hook."""
    logger.info("🚀 Starting WebAudit API v%s", __version__)
    await init_db()
    logger.info("✅ Database ready")

    if not settings.ai_auth_token:
        logger.warning("⚠️ No AI credentials configured — audits will use fallback scores")
    if not settings.pagespeed_api_key:
        logger.info("ℹ️ PageSpeed API key not set — PageSpeed metrics disabled")

    yield

    await close_db()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="WebAudit API",
    description=(
        "AI-scored website audits — collects site signals, scores them per "
        "category and streams progress over Server-Sent Events."
    ),
    version=__version__,
    lifespan=lifespan,
)

# CORS: the dashboard is served from a different origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "WebAudit API",
        "version": __version__,
        "docs": "/docs",
    }
