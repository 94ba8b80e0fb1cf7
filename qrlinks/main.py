"""
FastAPI Application Entry Point

This module initializes the FastAPI application and configures:
- API routes (links, redirect, analytics, auth, billing)
- Exception handlers for service errors
- Middleware (logging, CORS)
- Rate limiting
- Application metadata

Run with:
    uvicorn qrlinks.main:app --reload
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from qrlinks.api import accounts, endpoints
from qrlinks.api.errors import register_exception_handlers
from qrlinks.core.rate_limit import limiter
from qrlinks.core.setting import settings
from qrlinks.db.session import create_tables, dispose_engine
from qrlinks.middleware.logging import add_logging_middleware

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("qrlinks")

# Title and description are used in auto-generated API documentation
app = FastAPI(
    title="QR Links Service",
    description="Short links with QR codes, scan tracking and plan-based analytics",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI documentation
    redoc_url="/redoc",  # ReDoc documentation
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)

add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "QR Links Service",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy"}


app.include_router(endpoints.router)
app.include_router(accounts.router)


@app.on_event("startup")
async def startup_event():
    if settings.AUTO_CREATE_TABLES:
        await create_tables()
    logger.info(f"QR Links Service started ({settings.ENV_SETTING.value})")


@app.on_event("shutdown")
async def shutdown_event():
    await dispose_engine()
