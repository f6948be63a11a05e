import logging
from fastapi import APIRouter, Depends, Query, status
from ..access import Operation
from ..auth import get_request_context, get_store
from ..config import FORMS_PAGE_SIZE
from ..context import RequestContext
from ..errors import DraftValidationError
from ..models import Form
from ..schemas import FormCreate, FormUpdate
from ..store import Store
from ..tenancy import stamp_form
from ..utils import canonical_json, load_json

logger = logging.getLogger(__name__)

router = APIRouter()

def _serialize_form(form: Form):
    return {
        "id": form.id,
        "title": form.title,
        "description": form.description,
        "slug": form.slug,
        "fields": load_json(form.fields_json, []),
        "is_active": form.is_active,
        "created_by_id": form.created_by_id,
        "tenant_id": form.tenant_id,
        "created_at": form.created_at,
        "updated_at": form.updated_at,
    }

def _fields_json(fields) -> str:
    return canonical_json([f.model_dump(mode="json", exclude_none=True) for f in fields])

@router.get("")
def list_forms(
    limit: int = Query(FORMS_PAGE_SIZE, ge=1, le=100),
    page: int = Query(1, ge=1),
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    forms, total = store.find(Form, ctx.actor, order_by=Form.id.desc(), limit=limit, page=page)
    return {"docs": [_serialize_form(f) for f in forms], "total": total, "limit": limit, "page": page}

@router.post("", status_code=status.HTTP_201_CREATED)
def create_form(
    payload: FormCreate,
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    draft = payload.model_dump(exclude={"fields"})
    draft["fields_json"] = _fields_json(payload.fields)
    draft = stamp_form(draft, ctx.actor, Operation.CREATE)
    form = store.create(Form, ctx.actor, draft)
    logger.info("form %s (%s) created by %s", form.id, form.slug, ctx.actor.describe())
    return _serialize_form(form)

@router.get("/{form_id}")
def get_form(
    form_id: int,
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    return _serialize_form(store.get(Form, form_id, ctx.actor))

@router.patch("/{form_id}")
def update_form(
    form_id: int,
    payload: FormUpdate,
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    existing = store.get(Form, form_id, ctx.actor, operation=Operation.UPDATE)
    patch = payload.model_dump(exclude_unset=True, exclude={"fields"})
    for key in ("title", "is_active"):
        if key in patch and patch[key] is None:
            raise DraftValidationError(f"{key} cannot be null", field=key)
    if "fields" in payload.model_fields_set:
        if payload.fields is None:
            raise DraftValidationError("fields cannot be null", field="fields")
        patch["fields_json"] = _fields_json(payload.fields)
    patch = stamp_form(patch, ctx.actor, Operation.UPDATE, existing=existing)
    form = store.update(Form, form_id, ctx.actor, patch)
    return _serialize_form(form)

@router.delete("/{form_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_form(
    form_id: int,
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    store.delete(Form, form_id, ctx.actor)
    logger.info("form %s deleted by %s", form_id, ctx.actor.describe())
