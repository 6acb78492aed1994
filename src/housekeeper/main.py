"""FastAPI application entry point."""

from fastapi import FastAPI

from .config import AppConfig, load_config
from .dependencies import include_routers
from .lifecycle import lifespan
from .logging import configure_logging
from .media.blob_store import BlobStore


def create_app(config: AppConfig | None = None, *, blob_store: BlobStore | None = None) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    configure_logging()
    cfg = config or load_config()
    app = FastAPI(title="Housekeeper", lifespan=lifespan)
    include_routers(app, cfg, blob_store=blob_store)
    return app
