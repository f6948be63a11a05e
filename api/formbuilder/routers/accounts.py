import logging
import time
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
from ..auth import get_session, require_user
from ..config import LOCK_TIME_SECONDS, MAX_LOGIN_ATTEMPTS, TOKEN_EXPIRATION_SECONDS
from ..context import Actor, Role
from ..models import User
from ..schemas import ProfileUpdate, UserLogin, UserRegister
from ..security import hash_password, issue_token, verify_password

logger = logging.getLogger(__name__)

router = APIRouter()

def _serialize_user(user: User):
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }

def _normalize_email(email: str) -> str:
    return email.strip().lower()

def _registry_is_empty(session: Session) -> bool:
    return session.exec(select(User.id)).first() is None

def _settle_first_admin(session: Session, user: User):
    # Two registrations can both see an empty table; the lowest id keeps admin.
    oldest = session.exec(select(User).where(User.role == Role.ADMIN.value).order_by(User.id)).first()
    if oldest is not None and oldest.id != user.id:
        logger.warning("user %s raced admin %s for bootstrap; registering as user", user.id, oldest.id)
        user.role = Role.USER.value
        session.add(user)
        session.commit()
        session.refresh(user)

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: UserRegister, session: Session = Depends(get_session)):
    email = _normalize_email(payload.email)
    existing = session.exec(select(User).where(User.email == email)).first()
    if existing:
        raise HTTPException(status.HTTP_409_CONFLICT, "email already registered")
    # the first account on an empty database administers it
    first_user = _registry_is_empty(session)
    user = User(
        email=email,
        name=payload.name.strip(),
        role=Role.ADMIN.value if first_user else Role.USER.value,
        hashed_password=hash_password(payload.password),
    )
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status.HTTP_409_CONFLICT, "email already registered")
    session.refresh(user)
    if first_user:
        _settle_first_admin(session, user)
    logger.info("registered user %s (%s) as %s", user.id, user.email, user.role)
    return _serialize_user(user)

@router.post("/login")
def login(payload: UserLogin, session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.email == _normalize_email(payload.email))).first()
    if not user:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "The email or password provided is incorrect.")
    now = datetime.utcnow()
    if user.lock_until and user.lock_until > now:
        raise HTTPException(status.HTTP_423_LOCKED, "This user is locked due to having too many failed login attempts.")
    if not verify_password(payload.password, user.hashed_password):
        user.login_attempts += 1
        if user.login_attempts >= MAX_LOGIN_ATTEMPTS:
            user.lock_until = now + timedelta(seconds=LOCK_TIME_SECONDS)
            user.login_attempts = 0
            logger.warning("locking user %s after %s failed logins", user.id, MAX_LOGIN_ATTEMPTS)
        session.add(user)
        session.commit()
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "The email or password provided is incorrect.")
    user.login_attempts = 0
    user.lock_until = None
    session.add(user)
    session.commit()
    session.refresh(user)
    return {
        "message": "Auth Passed",
        "token": issue_token(user.id),
        "exp": int(time.time()) + TOKEN_EXPIRATION_SECONDS,
        "user": _serialize_user(user),
    }

@router.get("/me")
def me(actor: Actor = Depends(require_user), session: Session = Depends(get_session)):
    return _serialize_user(session.get(User, actor.user_id))

@router.patch("/me")
def update_me(
    payload: ProfileUpdate,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_session),
):
    user = session.get(User, actor.user_id)
    if payload.name is not None:
        user.name = payload.name.strip()
    if payload.password is not None:
        user.hashed_password = hash_password(payload.password)
    user.updated_at = datetime.utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)
    return _serialize_user(user)
