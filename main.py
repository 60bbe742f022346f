from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livefeed.config import Settings
from livefeed.infrastructure.realtime import RealtimeService, realtime_service
from livefeed.interfaces.api.routes import register_routes


def create_app(
    service: RealtimeService | None = None, settings: Settings | None = None
) -> FastAPI:
    """Create and configure the live updates FastAPI application."""

    realtime = service or realtime_service

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start the realtime connection on boot and release it on shutdown."""

        await realtime.start(settings)
        yield
        await realtime.stop()

    app = FastAPI(lifespan=lifespan)
    app.state.realtime_service = realtime

    # Allow the forum front-end dev server to open the live updates websocket.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()
