from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docflow import __version__
from docflow.core.config import get_settings
from docflow.core.logger import configure_logging
from docflow.api.routers import health, runs, workflows

settings = get_settings()

configure_logging(settings)

app = FastAPI(
    title=settings.app_name,
    description="Multi-level approval workflows for account, CIF and deposit documents",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(workflows.router)
app.include_router(runs.router)
app.include_router(runs.remote_router)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
