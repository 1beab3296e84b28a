"""Synchronous bulk moderation/admin actions on a single entity."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from bulk_jobs.api.dependencies.db import get_processor
from bulk_jobs.api.routers.job_helpers import build_action_response, bulk_error_response
from bulk_jobs.api.schemas.bulk import BulkActionRequest, BulkActionResponse
from bulk_jobs.core.config import get_settings
from bulk_jobs.core.errors import BulkJobAbortedError, BulkRequestError
from bulk_jobs.services.bulk_processor import BulkJobProcessor
from bulk_jobs.services.bulk_requests import parse_action_request

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{entity}/bulk",
    summary="Apply one action to a list of document ids",
    response_model=BulkActionResponse,
)
async def run_bulk_action(
    entity: str,
    payload: BulkActionRequest,
    x_user_id: str | None = Header(None, description="Caller identity, authorized upstream"),
    processor: BulkJobProcessor = Depends(get_processor),
):
    """Run the action inline and report per-id outcomes.

    Items that fail (missing document, invalid fields, unknown action) are
    listed under ``results.failed``; the request itself still succeeds.
    """
    settings = get_settings()
    try:
        request = parse_action_request(
            entity,
            payload.model_dump(),
            max_items=settings.max_sync_items,
            batch_limit=processor.store.max_batch_writes,
            default_update_existing=settings.default_update_existing,
        )
    except BulkRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        context = processor.run(request, requested_by=x_user_id)
    except BulkJobAbortedError as exc:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=bulk_error_response(exc, exc.job_id),
        )
    except SQLAlchemyError as exc:
        logger.error(f"Database error creating bulk job for {entity}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=bulk_error_response(exc),
        )

    return build_action_response(context, request.action_keyword or "")
