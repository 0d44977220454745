from fastapi import APIRouter

from app.scheduler import automation_scheduler

router = APIRouter()


@router.get("/health", tags=["System"])
def get_system_health():
    """
    Returns the service status including the automation scheduler state.
    """
    return {
        "status": "ok",
        "scheduler": automation_scheduler.describe(),
    }
