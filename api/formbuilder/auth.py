import json
import logging
from typing import Optional
from fastapi import Depends, Header, HTTPException, Query, Request, status
from sqlmodel import Session

from .context import Actor, RequestContext
from .models import User
from .security import InvalidToken, read_token
from .store import Store

logger = logging.getLogger(__name__)


def get_session(request: Request):
    with request.app.state.database.session() as session:
        yield session


def get_store(request: Request, session: Session = Depends(get_session)) -> Store:
    return Store(session, database=request.app.state.database)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def resolve_actor(
    authorization: Optional[str] = Header(default=None),
    token: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
) -> Actor:
    candidate = _bearer_token(authorization) or token
    if not candidate:
        return Actor.anonymous()
    try:
        user_id = read_token(candidate)
    except InvalidToken as exc:
        logger.info("Token verification failed: %s", exc)
        return Actor.anonymous()
    # role and email always come from the live row, never from the token
    user = session.get(User, user_id)
    if not user:
        logger.info("Token for unknown user %s", user_id)
        return Actor.anonymous()
    return Actor.from_user(user)


def require_user(actor: Actor = Depends(resolve_actor)) -> Actor:
    if not actor.is_authenticated:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return actor


async def get_request_context(request: Request, actor: Actor = Depends(resolve_actor)) -> RequestContext:
    raw = await request.body()
    body = None
    if raw:
        try:
            body = json.loads(raw)
        except ValueError:
            body = raw.decode("utf-8", errors="replace")
    return RequestContext(
        actor=actor,
        query=dict(request.query_params),
        body=body,
        source_address=request.client.host if request.client else None,
        headers={key.lower(): value for key, value in request.headers.items()},
    )
