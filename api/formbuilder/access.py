"""Access control decisions for forms and submissions.

``decide`` is pure: it looks only at the operation, the actor and the collection
and returns Allow, Deny or a ScopedFilter. A ScopedFilter must be ANDed into any
query (``apply``) and re-checked on any entity fetched by id (``matches``); the
persistence layer in ``store.py`` does both.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .context import Actor, Role


class Collection(str, Enum):
    FORMS = "forms"
    SUBMISSIONS = "form-submissions"


class Operation(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Effect(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    SCOPED = "scoped"


# Column a non-admin user's scope is keyed on, per collection.
OWNER_FIELDS = {
    Collection.FORMS: "created_by_id",
    Collection.SUBMISSIONS: "tenant_id",
}


def _ref_id(value: Any) -> Any:
    # Relationship values may arrive as an entity rather than its id.
    return getattr(value, "id", value)


@dataclass(frozen=True)
class ScopedFilter:
    field: str
    value: int

    def matches(self, entity) -> bool:
        current = _ref_id(getattr(entity, self.field, None))
        return current is not None and current == _ref_id(self.value)

    def apply(self, statement, model):
        return statement.where(getattr(model, self.field) == self.value)


@dataclass(frozen=True)
class Decision:
    effect: Effect
    scope: Optional[ScopedFilter] = None
    reason: str = ""

    @property
    def denied(self) -> bool:
        return self.effect is Effect.DENY

    def permits(self, entity) -> bool:
        if self.effect is Effect.ALLOW:
            return True
        if self.effect is Effect.SCOPED:
            return self.scope.matches(entity)
        return False

    @classmethod
    def allow(cls, reason: str = "") -> "Decision":
        return cls(Effect.ALLOW, reason=reason)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(Effect.DENY, reason=reason)

    @classmethod
    def scoped(cls, field: str, value: int) -> "Decision":
        return cls(Effect.SCOPED, scope=ScopedFilter(field, value), reason=f"{field} == {value}")


def decide(operation, actor: Actor, collection) -> Decision:
    operation = Operation(operation)
    collection = Collection(collection)

    if not actor.is_authenticated:
        # Form existence and is_active are checked by the ingest flow.
        if collection is Collection.SUBMISSIONS and operation is Operation.CREATE:
            return Decision.allow("public submission")
        return Decision.deny("authentication required")

    if collection is Collection.SUBMISSIONS and operation is Operation.UPDATE:
        return Decision.deny("submissions are immutable")

    if actor.is_admin:
        return Decision.allow("admin")

    if actor.role != Role.USER.value:
        return Decision.deny(f"unknown role {actor.role!r}")

    if operation is Operation.CREATE:
        return Decision.allow()

    return Decision.scoped(OWNER_FIELDS[collection], actor.user_id)
