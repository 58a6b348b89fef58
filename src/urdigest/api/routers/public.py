"""Routes mounted on every role."""

from fastapi import APIRouter, Request

from urdigest import SERVICE_NAME

router = APIRouter()


@router.get("/health")
def health(request: Request) -> dict:
    """Liveness for the load balancer; reports which route set is mounted."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "role": getattr(request.app.state, "role", "public"),
    }
