
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field as ORMField

class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = ORMField(default=None, primary_key=True)
    email: str = ORMField(index=True, unique=True)
    name: str
    role: str = "user"  # admin|user
    hashed_password: str
    login_attempts: int = 0
    lock_until: Optional[datetime] = None
    created_at: datetime = ORMField(default_factory=datetime.utcnow)
    updated_at: datetime = ORMField(default_factory=datetime.utcnow)

class Form(SQLModel, table=True):
    __tablename__ = "forms"

    id: Optional[int] = ORMField(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    slug: Optional[str] = ORMField(default=None, index=True)
    fields_json: str = "[]"
    is_active: bool = True
    # null only on rows created before ownership was tracked; see backfill.py
    created_by_id: Optional[int] = ORMField(default=None, index=True)
    tenant_id: Optional[int] = ORMField(default=None, index=True)
    created_at: datetime = ORMField(default_factory=datetime.utcnow)
    updated_at: datetime = ORMField(default_factory=datetime.utcnow)

class Submission(SQLModel, table=True):
    __tablename__ = "form_submissions"

    id: Optional[int] = ORMField(default=None, primary_key=True)
    form_id: int = ORMField(index=True)
    data_json: str = "{}"
    submitted_at: datetime = ORMField(default_factory=datetime.utcnow)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    tenant_id: Optional[int] = ORMField(default=None, index=True)


# Columns only the server (or an elevated write) may set.
READ_ONLY_FIELDS = {
    Form: frozenset({"id", "created_by_id", "tenant_id", "created_at"}),
    Submission: frozenset({"id", "form_id", "data_json", "submitted_at", "ip_address", "user_agent", "tenant_id"}),
}
