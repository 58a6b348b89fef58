"""Worker/internal routes (APP_ROLE=worker)."""

from fastapi import APIRouter

from urdigest.api.routes import tasks_enrichment

router = APIRouter()
router.include_router(tasks_enrichment.router)


@router.get("/tasks/health")
def tasks_health() -> dict:
    """Tasks subsystem health check."""
    return {"status": "ok", "subsystem": "tasks"}
