"""Who is calling, and what they sent.

An Actor is the principal an access decision is made for. A RequestContext is
built once per inbound call and handed, unchanged, to every step of a flow.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


class Actor(BaseModel):
    user_id: Optional[int] = None
    role: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role == Role.ADMIN.value

    @classmethod
    def anonymous(cls) -> "Actor":
        return cls()

    @classmethod
    def system(cls) -> "Actor":
        # Not a user; only useful together with override_access=True.
        return cls(role="system")

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(user_id=user.id, role=user.role, email=user.email)

    def describe(self) -> str:
        if self.is_authenticated:
            return f"user:{self.user_id}"
        return self.role or "anonymous"


class RequestContext(BaseModel):
    actor: Actor = Field(default_factory=Actor.anonymous)
    query: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    source_address: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)

    @property
    def user_agent(self) -> Optional[str]:
        return self.headers.get("user-agent")
