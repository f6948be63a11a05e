"""Access-checked persistence for forms and submissions.

Every call asks ``access.decide`` first unless ``override_access`` is set. Scoped
decisions are ANDed into queries and re-checked on rows fetched by id, so a
fetch by primary key cannot step outside the caller's scope.
"""

import logging
from concurrent.futures import TimeoutError as LookupTimeout
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .access import Collection, Decision, Operation, decide
from .config import FORM_LOOKUP_TIMEOUT_SECONDS
from .context import Actor
from .errors import AccessDeniedError, NotFoundError, StorageError
from .models import Form, Submission, READ_ONLY_FIELDS
from .utils import MAX_ROW_ID

logger = logging.getLogger(__name__)

COLLECTIONS = {
    Form: Collection.FORMS,
    Submission: Collection.SUBMISSIONS,
}

RESOURCE_NAMES = {
    Form: "form",
    Submission: "submission",
}


class Store:
    def __init__(self, session: Session, database=None, lookup_timeout: Optional[float] = None):
        self.session = session
        self.database = database
        if lookup_timeout is None:
            lookup_timeout = getattr(database, "lookup_timeout", FORM_LOOKUP_TIMEOUT_SECONDS)
        self.lookup_timeout = lookup_timeout

    def _authorize(self, operation: Operation, model, actor: Actor, override_access: bool) -> Decision:
        if override_access:
            return Decision.allow("override")
        collection = COLLECTIONS[model]
        decision = decide(operation, actor, collection)
        if decision.denied:
            raise AccessDeniedError(
                collection.value,
                operation.value,
                decision.reason,
                authenticated=actor.is_authenticated,
            )
        return decision

    def _commit(self, action: str):
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("storage failure during %s", action)
            raise StorageError(f"Could not {action}") from exc

    def find(
        self,
        model,
        actor: Actor,
        *,
        where: Iterable[Any] = (),
        order_by=None,
        limit: Optional[int] = None,
        page: int = 1,
        override_access: bool = False,
    ) -> Tuple[List[Any], int]:
        decision = self._authorize(Operation.READ, model, actor, override_access)
        statement = select(model)
        if decision.scope is not None:
            statement = decision.scope.apply(statement, model)
        for clause in where:
            statement = statement.where(clause)
        total = self.session.exec(select(func.count()).select_from(statement.subquery())).one()
        statement = statement.order_by(order_by if order_by is not None else model.id)
        if limit:
            statement = statement.offset((max(page, 1) - 1) * limit).limit(limit)
        return list(self.session.exec(statement).all()), total

    def get(
        self,
        model,
        entity_id: int,
        actor: Actor,
        *,
        operation: Operation = Operation.READ,
        override_access: bool = False,
    ):
        decision = self._authorize(operation, model, actor, override_access)
        entity = self.session.get(model, entity_id) if abs(entity_id) <= MAX_ROW_ID else None
        if entity is None:
            raise NotFoundError(RESOURCE_NAMES[model], entity_id)
        if not decision.permits(entity):
            raise AccessDeniedError(
                COLLECTIONS[model].value,
                operation.value,
                "outside the caller's scope",
                authenticated=actor.is_authenticated,
                entity_id=entity_id,
            )
        return entity

    def create(self, model, actor: Actor, values: Dict[str, Any], *, override_access: bool = False):
        self._authorize(Operation.CREATE, model, actor, override_access)
        entity = model(**values)
        self.session.add(entity)
        self._commit(f"create {RESOURCE_NAMES[model]}")
        self.session.refresh(entity)
        return entity

    def update(
        self,
        model,
        entity_id: int,
        actor: Actor,
        patch: Dict[str, Any],
        *,
        override_access: bool = False,
    ):
        entity = self.get(model, entity_id, actor, operation=Operation.UPDATE, override_access=override_access)
        if not override_access:
            patch = {key: value for key, value in patch.items() if key not in READ_ONLY_FIELDS[model]}
        for key, value in patch.items():
            setattr(entity, key, value)
        if hasattr(entity, "updated_at"):
            entity.updated_at = datetime.utcnow()
        self.session.add(entity)
        self._commit(f"update {RESOURCE_NAMES[model]} {entity_id}")
        self.session.refresh(entity)
        return entity

    def delete(self, model, entity_id: int, actor: Actor, *, override_access: bool = False):
        entity = self.get(model, entity_id, actor, operation=Operation.DELETE, override_access=override_access)
        self.session.delete(entity)
        self._commit(f"delete {RESOURCE_NAMES[model]} {entity_id}")

    def lookup_form(self, form_id: int) -> Optional[Form]:
        """Elevated, read-only fetch of a form, bounded by ``lookup_timeout``.

        Runs on the database's lookup pool in its own session. Raises
        concurrent.futures.TimeoutError when the lookup takes too long; a
        lookup still queued at that point is cancelled.
        """
        if self.database is None or self.database.executor is None:
            return self.session.get(Form, form_id)
        future = self.database.executor.submit(self.database.fetch_detached, Form, form_id)
        try:
            return future.result(timeout=self.lookup_timeout)
        except LookupTimeout:
            future.cancel()
            raise
