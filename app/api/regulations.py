"""API endpoints for refreshing and monitoring the regulations index."""

import asyncio

from fastapi import APIRouter, Body, HTTPException, Query
from fastapi.responses import JSONResponse

from app.core.config import Settings, get_settings
from app.core.exceptions import GENERIC_MESSAGE, RegsAssistantError
from app.core.logging import get_logger
from app.core.schemas_regulations import RefreshRequest
from app.db.regulation_updates import RegulationUpdateLog
from app.db.supabase_client import get_supabase
from app.graphs.regulations_refresh_graph import build_refresh_job, refresh_regulations_index

logger = get_logger(__name__)

router = APIRouter()

SUPABASE_KEYS = ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")


def _record_setup_failure(settings: Settings, error_message: str) -> None:
    """Best-effort failed-run row for errors raised while building the job."""
    if settings.missing_keys(SUPABASE_KEYS):
        return
    try:
        RegulationUpdateLog(get_supabase()).record_failed(error_message)
    except Exception as e:
        logger.error(f"Error logging regulations update: {e}")


@router.post("/building-regs-updater")
async def update_building_regulations(request: RefreshRequest | None = Body(default=None)) -> JSONResponse:
    """
    Crawl the regulations site and rebuild its vectors in the index.

    Body (optional):
        sourceUrl: Crawl root, defaults to the configured regulations URL

    Returns:
        {success, pagesCrawled, chunksProcessed, vectorsCreated, message},
        or {success: false, error} with status 500
    """
    settings = get_settings()
    source_url = (request.source_url if request else None) or settings.REGULATIONS_SOURCE_URL

    job = None
    try:
        job = build_refresh_job(settings)
        result = await refresh_regulations_index(source_url, job)
    except Exception as e:
        logger.exception(f"Building regulations update failed for {source_url}")
        if job is None:
            # The job records its own failures; this one happened before it existed
            await asyncio.to_thread(_record_setup_failure, settings, str(e))
        message = e.user_message if isinstance(e, RegsAssistantError) else GENERIC_MESSAGE
        return JSONResponse(content={"success": False, "error": message}, status_code=500)
    finally:
        if job is not None:
            await job.aclose()

    return JSONResponse(
        content={
            "success": True,
            **result.model_dump(by_alias=True),
            "message": "Building regulations database updated successfully",
        },
        status_code=200,
    )


@router.get("/building-regs-updates")
async def list_building_regs_updates(
    limit: int = Query(10, description="Maximum number of runs to return", ge=1, le=100),
) -> dict:
    """
    List the most recent index refresh runs, newest first.

    Raises:
        HTTPException 500: If the run log cannot be read
    """
    try:
        records = RegulationUpdateLog(get_supabase()).list_recent(limit=limit)
    except Exception:
        logger.exception("Failed to list building regulations updates")
        raise HTTPException(status_code=500, detail="Failed to retrieve update history")

    return {
        "updates": [record.model_dump(mode="json") for record in records],
        "count": len(records),
    }
