"""
Shared router dependencies.
"""

from fastapi import HTTPException, Request, status

from ..services.queue_service import QueueService


async def get_queue_service(request: Request) -> QueueService:
    """Queue service created at startup."""
    service = getattr(request.app.state, "queue_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Queue service not ready"
        )
    return service
