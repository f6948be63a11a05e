"""Assign a tenant to forms and submissions created before tenancy existed.

Every row whose ``tenant_id`` is null is handed to the first admin account.
Authorship (``created_by_id``) is not touched. Rows that already have a tenant
are never selected, so running the backfill again changes nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlmodel import select

from .context import Actor, Role
from .errors import PreconditionFailedError
from .models import Form, Submission, User
from .store import Store

logger = logging.getLogger(__name__)


@dataclass
class BackfillReport:
    admin_id: int
    admin_email: str
    forms: List[int] = field(default_factory=list)
    submissions: List[int] = field(default_factory=list)

    @property
    def forms_fixed(self) -> int:
        return len(self.forms)

    @property
    def submissions_fixed(self) -> int:
        return len(self.submissions)

    @property
    def changed(self) -> bool:
        return bool(self.forms or self.submissions)


def find_fallback_admin(store: Store) -> Optional[User]:
    return store.session.exec(
        select(User).where(User.role == Role.ADMIN.value).order_by(User.id)
    ).first()


def backfill_tenants(store: Store) -> BackfillReport:
    admin = find_fallback_admin(store)
    if admin is None:
        raise PreconditionFailedError("No admin user found. Please create an admin user first.")
    logger.info("assigning untenanted records to admin %s (%s)", admin.email, admin.id)

    system = Actor.system()
    report = BackfillReport(admin_id=admin.id, admin_email=admin.email)

    forms, _ = store.find(Form, system, where=[Form.tenant_id.is_(None)], override_access=True)
    for form in forms:
        store.update(Form, form.id, system, {"tenant_id": admin.id}, override_access=True)
        report.forms.append(form.id)
        logger.info('form "%s" (%s) assigned to admin', form.title, form.id)

    submissions, _ = store.find(Submission, system, where=[Submission.tenant_id.is_(None)], override_access=True)
    for submission in submissions:
        store.update(Submission, submission.id, system, {"tenant_id": admin.id}, override_access=True)
        report.submissions.append(submission.id)
        logger.info("submission %s assigned to admin", submission.id)

    return report
