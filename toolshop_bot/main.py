"""
Toolshop Bot API
================

FastAPI application for the repair shop's WhatsApp quote workflow.

Startup connects the WhatsApp transport and starts the inbound worker that
feeds client answers to the authorization dialogue; shutdown stops the worker
and disconnects the transport.

Usage:
------
    uvicorn toolshop_bot.main:app --host 0.0.0.0 --port 8000
"""

# Load environment variables FIRST, before any module imports that need them
from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import config
from .logging_config import setup_logging
from .messaging import get_transport
from .routes import limiter, orders_router, quotes_router, whatsapp_router
from .services.inbound import InboundWorker

setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    transport = get_transport()
    if not transport.connect():
        logger.error("WhatsApp transport is not ready; sends will fail until it reconnects")
    worker = InboundWorker(transport)
    worker.start()
    app.state.inbound_worker = worker
    try:
        yield
    finally:
        worker.stop()
        transport.disconnect("application shutdown")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Toolshop Bot API",
        description="Repair quotes and WhatsApp authorization for a tool repair shop",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Configure rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.include_router(whatsapp_router)
    app.include_router(quotes_router)
    app.include_router(orders_router)

    @app.get("/health")
    def health_check():
        transport = get_transport()
        return {
            "status": "healthy",
            "whatsapp_ready": transport.is_ready(),
            "transport": transport.name,
        }

    return app


app = create_app()
