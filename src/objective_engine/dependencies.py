"""FastAPI dependencies."""

from fastapi import HTTPException, Request, status

from objective_engine.objectives.service import ObjectiveService


def get_objective_service(request: Request) -> ObjectiveService:
    """The service instance built during application startup."""
    service = getattr(request.app.state, "objective_service", None)
    if service is None:
        msg = "Objective service not initialized."
        raise RuntimeError(msg)
    return service


def get_current_user_id(request: Request) -> int:
    """Acting user id, set on request.state by the host application's auth layer."""
    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return int(user_id)
