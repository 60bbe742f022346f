"""FastAPI dependency utilities."""

from fastapi import HTTPException, status
from fastapi.requests import HTTPConnection

from livefeed.infrastructure.realtime import RealtimeService


def get_realtime_service(connection: HTTPConnection) -> RealtimeService:
    """Return the realtime service attached to the running application."""

    service = getattr(connection.app.state, "realtime_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Realtime service is not configured",
        )
    return service
