"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from credit_decisioning.api.v1.router import api_router
from credit_decisioning.config import settings
from credit_decisioning.core.logging import configure_logging
from credit_decisioning.db.session import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    yield


# Create FastAPI application
app = FastAPI(
    title="Credit Decisioning API",
    description="API for authoring, simulating and executing credit decision workflows",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router with v1 prefix
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "message": "Credit Decisioning API",
        "version": "1.0.0",
        "docs": "/api/docs",
    }
