"""Ownership stamping for new forms and submissions.

These are plain functions over draft dicts. Callers compose them explicitly:
``stamp_form`` before a form is written, ``stamp_submission`` before a submission
is written. Values derived from the actor or the parent form always replace
whatever the client put in the draft.
"""

import re
from concurrent.futures import TimeoutError as LookupTimeout
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .access import Operation
from .context import Actor, RequestContext
from .utils import now_ms

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify_title(title: str, timestamp_ms: Optional[int] = None) -> str:
    """``"Contact Us!! Please"`` -> ``"contact-us-please-1700000000000"``."""
    base = _NON_ALNUM.sub("-", (title or "").lower()).strip("-") or "form"
    if timestamp_ms is None:
        timestamp_ms = now_ms()
    return f"{base}-{timestamp_ms}"


def stamp_form(
    draft: Dict[str, Any],
    actor: Actor,
    operation,
    existing=None,
    timestamp_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """Return a copy of ``draft`` with ownership and slug filled in.

    On create the actor becomes both author and tenant. On update ownership is
    left alone and an explicit non-empty slug is kept; a slug is derived when
    the draft clears it or the stored form has none.
    """
    operation = Operation(operation)
    stamped = dict(draft)

    if operation is Operation.CREATE:
        if actor.is_authenticated:
            stamped["created_by_id"] = actor.user_id
            stamped["tenant_id"] = actor.user_id
        stamped["slug"] = slugify_title(stamped.get("title"), timestamp_ms)
        return stamped

    stamped.pop("created_by_id", None)
    stamped.pop("tenant_id", None)
    if stamped.get("slug"):
        return stamped
    stored_slug = getattr(existing, "slug", None)
    if "slug" in stamped or not stored_slug:
        title = stamped.get("title") or getattr(existing, "title", None)
        stamped["slug"] = slugify_title(title, timestamp_ms)
    return stamped


class StampOutcome(str, Enum):
    STAMPED = "stamped"
    SKIPPED_NOT_FOUND = "skipped_not_found"
    SKIPPED_ERROR = "skipped_error"


@dataclass
class StampResult:
    draft: Dict[str, Any]
    outcome: StampOutcome
    reason: str = ""

    @property
    def stamped(self) -> bool:
        return self.outcome is StampOutcome.STAMPED


def stamp_submission(
    draft: Dict[str, Any],
    ctx: RequestContext,
    lookup: Callable[[int], Any],
) -> StampResult:
    """Derive the submission's tenant from its form and record request metadata.

    ``lookup`` fetches the parent form with elevated access and may raise or time
    out. None of that stops the submission: the tenant is left unset and the
    outcome says why, so the backfill can repair the row later.
    """
    stamped = dict(draft)
    stamped.pop("tenant_id", None)
    if ctx.source_address:
        stamped["ip_address"] = ctx.source_address
    else:
        stamped.pop("ip_address", None)
    if ctx.user_agent:
        stamped["user_agent"] = ctx.user_agent
    else:
        stamped.pop("user_agent", None)

    form_id = stamped.get("form_id")
    if form_id is None:
        return StampResult(stamped, StampOutcome.SKIPPED_NOT_FOUND, "submission has no form reference")

    try:
        form = lookup(form_id)
    except LookupTimeout:
        return StampResult(stamped, StampOutcome.SKIPPED_ERROR, f"form {form_id} lookup timed out")
    except Exception as exc:
        return StampResult(stamped, StampOutcome.SKIPPED_ERROR, f"form {form_id} lookup failed: {exc!r}")

    if form is None:
        return StampResult(stamped, StampOutcome.SKIPPED_NOT_FOUND, f"form {form_id} not found")
    if form.tenant_id is None:
        return StampResult(stamped, StampOutcome.SKIPPED_NOT_FOUND, f"form {form_id} has no tenant")

    stamped["tenant_id"] = form.tenant_id
    return StampResult(stamped, StampOutcome.STAMPED)
