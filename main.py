"""Main entry point for the FastAPI application."""

import structlog
import uvicorn

from ledger.core.config import get_settings
from restapi.router import create_app

app = create_app()

if __name__ == "__main__":
    settings = get_settings()
    structlog.get_logger(__name__).info("starting_server", config=settings.model_dump(mode="json"))
    uvicorn.run("main:app", host=settings.server.host, port=settings.server.port)
