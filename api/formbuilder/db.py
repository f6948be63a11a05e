
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy import text, inspect
from sqlalchemy.exc import NoSuchTableError

from .config import FORM_LOOKUP_TIMEOUT_SECONDS, LOOKUP_POOL_SIZE

logger = logging.getLogger(__name__)

# Ownership columns that databases created before tenancy was tracked lack.
_TENANT_COLUMNS = {
    "forms": ("created_by_id", "tenant_id"),
    "form_submissions": ("tenant_id",),
}


class Database:
    """Long-lived persistence service: one engine, one lookup pool.

    Constructed once at process start and handed to the app (``create_app``) or
    the backfill command; ``init`` and ``shutdown`` bracket its use.
    """

    def __init__(
        self,
        url: Optional[str],
        lookup_pool_size: int = LOOKUP_POOL_SIZE,
        lookup_timeout: float = FORM_LOOKUP_TIMEOUT_SECONDS,
    ):
        self.url = url
        self.lookup_pool_size = lookup_pool_size
        self.lookup_timeout = lookup_timeout
        self.engine = None
        self.executor: Optional[ThreadPoolExecutor] = None

    def init(self):
        if not self.url:
            raise RuntimeError("DATABASE_URL is required")
        if self.engine is None:
            connect_args = {"check_same_thread": False} if self.url.startswith("sqlite") else {}
            self.engine = create_engine(self.url, echo=False, pool_pre_ping=True, connect_args=connect_args)
        from .models import User, Form, Submission  # noqa: F401
        SQLModel.metadata.create_all(self.engine)
        _ensure_tenant_columns(self.engine)
        if self.executor is None:
            self.executor = ThreadPoolExecutor(max_workers=self.lookup_pool_size, thread_name_prefix="form-lookup")
        return self

    def shutdown(self):
        if self.executor is not None:
            self.executor.shutdown(wait=False)
            self.executor = None
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    def session(self) -> Session:
        if self.engine is None:
            raise RuntimeError("Database.init() has not been called")
        return Session(self.engine)

    def fetch_detached(self, model, entity_id):
        """Load one row in a private session and detach it from that session."""
        with self.session() as session:
            entity = session.get(model, entity_id)
            if entity is not None:
                session.expunge(entity)
            return entity


def _ensure_tenant_columns(engine):
    inspector = inspect(engine)
    for table, wanted in _TENANT_COLUMNS.items():
        try:
            columns = [col["name"] for col in inspector.get_columns(table)]
        except NoSuchTableError:
            continue
        missing = [name for name in wanted if name not in columns]
        if not missing:
            continue
        with engine.begin() as conn:
            for name in missing:
                logger.warning("adding missing column %s.%s; run the tenant backfill", table, name)
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} INTEGER"))
