from fastapi import FastAPI

from .live import router as live_router


def register_routes(app: FastAPI) -> None:
    """Register every API router on the FastAPI application."""

    app.include_router(live_router)
