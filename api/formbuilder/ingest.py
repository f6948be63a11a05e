"""Public form submission.

One call walks received_request -> form_resolved -> active_checked ->
submission_stored -> responded. A rejection at any gate is raised as the
matching FormBuilderError and logged with the state it happened in.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .context import RequestContext
from .errors import AccessDeniedError, DraftValidationError, FormBuilderError, FormInactiveError, NotFoundError
from .models import Form, Submission
from .store import Store
from .tenancy import StampOutcome, stamp_submission
from .utils import canonical_json

logger = logging.getLogger(__name__)


class IngestState(str, Enum):
    RECEIVED_REQUEST = "received_request"
    FORM_RESOLVED = "form_resolved"
    ACTIVE_CHECKED = "active_checked"
    SUBMISSION_STORED = "submission_stored"
    RESPONDED = "responded"


@dataclass
class IngestResult:
    submission_id: int
    form_id: int
    tenant_id: Optional[int]
    stamp_outcome: StampOutcome


def resolve_form(store: Store, ctx: RequestContext, form_id: int) -> Form:
    """Fetch the form as the caller, falling back once to an elevated read.

    Anonymous submitters have no read grant on forms, yet must be able to find
    out whether the form exists and accepts submissions.
    """
    try:
        return store.get(Form, form_id, ctx.actor)
    except (NotFoundError, AccessDeniedError):
        logger.debug("form %s not readable by %s, retrying elevated", form_id, ctx.actor.describe())
    return store.get(Form, form_id, ctx.actor, override_access=True)


def ingest_submission(store: Store, ctx: RequestContext, form_id: int) -> IngestResult:
    state = IngestState.RECEIVED_REQUEST
    try:
        form = resolve_form(store, ctx, form_id)
        state = IngestState.FORM_RESOLVED

        if not form.is_active:
            raise FormInactiveError(form_id)
        state = IngestState.ACTIVE_CHECKED

        data = ctx.body if ctx.body is not None else {}
        if not isinstance(data, dict):
            raise DraftValidationError("Submission body must be a JSON object", field="data")

        draft = {"form_id": form.id, "data_json": canonical_json(data)}
        stamp = stamp_submission(draft, ctx, store.lookup_form)
        if not stamp.stamped:
            logger.warning(
                "submission to form %s stored without tenant (%s): %s",
                form_id,
                stamp.outcome.value,
                stamp.reason,
            )

        submission = store.create(Submission, ctx.actor, stamp.draft)
        state = IngestState.SUBMISSION_STORED
    except FormBuilderError as exc:
        logger.info("submission to form %s rejected at %s: %s", form_id, state.value, exc.error_code)
        raise

    logger.info(
        "stored submission %s for form %s (tenant=%s, from=%s)",
        submission.id,
        form_id,
        submission.tenant_id,
        ctx.actor.describe(),
    )
    return IngestResult(
        submission_id=submission.id,
        form_id=form.id,
        tenant_id=submission.tenant_id,
        stamp_outcome=stamp.outcome,
    )
