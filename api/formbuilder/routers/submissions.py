import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from ..auth import get_request_context, get_store
from ..config import SUBMISSIONS_PAGE_SIZE
from ..context import RequestContext
from ..errors import NotFoundError
from ..ingest import ingest_submission
from ..models import Submission
from ..store import Store
from ..utils import MAX_ROW_ID, load_json, parse_row_id

logger = logging.getLogger(__name__)

router = APIRouter()

def _serialize_submission(submission: Submission):
    return {
        "id": submission.id,
        "form_id": submission.form_id,
        "data": load_json(submission.data_json, {}),
        "submitted_at": submission.submitted_at,
        "ip_address": submission.ip_address,
        "user_agent": submission.user_agent,
        "tenant_id": submission.tenant_id,
    }

@router.get("/form-submissions")
def list_submissions(
    form_id: Optional[int] = Query(None, ge=1, le=MAX_ROW_ID),
    limit: int = Query(SUBMISSIONS_PAGE_SIZE, ge=1, le=200),
    page: int = Query(1, ge=1),
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    where = [Submission.form_id == form_id] if form_id is not None else []
    submissions, total = store.find(
        Submission, ctx.actor, where=where, order_by=Submission.id.desc(), limit=limit, page=page
    )
    return {"docs": [_serialize_submission(s) for s in submissions], "total": total, "limit": limit, "page": page}

@router.get("/form-submissions/{submission_id}")
def get_submission(
    submission_id: int,
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    return _serialize_submission(store.get(Submission, submission_id, ctx.actor))

@router.patch("/form-submissions/{submission_id}")
def update_submission(
    submission_id: int,
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    # denied for every actor; submissions are create-once
    patch = ctx.body if isinstance(ctx.body, dict) else {}
    return _serialize_submission(store.update(Submission, submission_id, ctx.actor, patch))

@router.delete("/form-submissions/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_submission(
    submission_id: int,
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    store.delete(Submission, submission_id, ctx.actor)
    logger.info("submission %s deleted by %s", submission_id, ctx.actor.describe())

@router.post("/submit-form/{form_id}", status_code=status.HTTP_201_CREATED)
def submit_form(
    form_id: str,
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    row_id = parse_row_id(form_id)
    if row_id is None:
        raise NotFoundError("form", form_id)
    result = ingest_submission(store, ctx, row_id)
    return {
        "success": True,
        "message": "Form submitted successfully",
        "submissionId": result.submission_id,
    }
