"""Worker routes for content enrichment."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from urdigest.api.task_auth import verify_task_auth
from urdigest.content.enrich import PENDING_BATCH_LIMIT, ContentEnricher
from urdigest.observability.correlation import get_correlation_id
from urdigest.observability.logging import get_logger
from urdigest.observability.redaction import safe_log_context

router = APIRouter(prefix="/tasks/enrichment", tags=["tasks"])

logger = get_logger(__name__)

_enricher: ContentEnricher | None = None


def _get_enricher() -> ContentEnricher:
    """Get enricher instance (allows test injection)."""
    global _enricher
    if _enricher is None:
        from urdigest.api.wiring import build_enricher

        _enricher = build_enricher()
    return _enricher


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return default
    return value


@router.post("/run-pending")
async def run_pending(request: Request) -> JSONResponse:
    """Enrich posts still waiting in ``pending`` status.

    Optional JSON body:
    - limit: max posts to pick up (default 50)
    - concurrent: posts enriched in parallel (default 1)
    """
    correlation_id = get_correlation_id()

    if not verify_task_auth(request):
        logger.warning(
            "task auth failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        raise HTTPException(status_code=401, detail="Unauthorized")

    payload: dict[str, Any] = {}
    body = await request.body()
    if body:
        try:
            payload = await request.json()
        except ValueError:
            logger.warning(
                "invalid json body",
                extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
            )
            return JSONResponse(status_code=400, content={"ok": False, "error": "invalid json"})
        if not isinstance(payload, dict):
            return JSONResponse(status_code=400, content={"ok": False, "error": "invalid json"})

    limit = _positive_int(payload.get("limit"), PENDING_BATCH_LIMIT)
    concurrent = _positive_int(payload.get("concurrent"), 1)

    results = _get_enricher().enrich_pending_posts(limit=limit, concurrent=concurrent)

    summary = {
        "processed": len(results),
        "succeeded": sum(1 for r in results if r.success),
        "with_ocr": sum(1 for r in results if r.ocr_extracted),
        "with_transcript": sum(1 for r in results if r.transcript_extracted),
    }
    logger.info(
        "pending enrichment run finished",
        extra={"extra_fields": safe_log_context(correlationId=correlation_id, **summary)},
    )
    return JSONResponse(status_code=200, content=summary)
