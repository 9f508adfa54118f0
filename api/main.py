"""
Gold Investment Platform API - Main Application.

FastAPI application with CORS enabled for frontend communication.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.dependencies import close_http_clients
from config.settings import get_settings

logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_http_clients()


# Create FastAPI application
app = FastAPI(
    title="Gold Investment Platform API",
    description="REST API for gold prices, question classification and digital gold purchases",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS - Allow all origins for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "gold-investment-platform-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Gold Investment Platform API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import ai_models, prices, purchases, questions

app.include_router(prices.router, prefix="/api/v1", tags=["Prices"])
app.include_router(questions.router, prefix="/api/v1", tags=["Questions"])
app.include_router(ai_models.router, prefix="/api/v1", tags=["AI Models"])
app.include_router(purchases.router, prefix="/api/v1", tags=["Purchases"])
