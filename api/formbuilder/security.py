"""Password hashing and bearer tokens.

Passwords are bcrypt hashes of a SHA-256 pre-hash, so inputs longer than bcrypt's
72 bytes are not silently truncated. Tokens are signed, timestamped payloads
carrying only the user id; everything else about the user is re-read from the
database on every request.
"""

import base64
import hashlib
from typing import Optional

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .config import SECRET_KEY, TOKEN_EXPIRATION_SECONDS

_TOKEN_SALT = "formbuilder-auth"


def _prehash(password: str) -> bytes:
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bool(bcrypt.checkpw(_prehash(plain_password), hashed_password.encode("utf-8")))
    except (ValueError, TypeError):
        return False


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(SECRET_KEY, salt=_TOKEN_SALT)


def issue_token(user_id: int) -> str:
    return _serializer().dumps({"id": user_id})


class InvalidToken(Exception):
    pass


def read_token(token: str, max_age: Optional[int] = None) -> int:
    """Return the user id inside ``token``.

    Raises InvalidToken when the signature is wrong, the token is older than
    ``max_age`` (TOKEN_EXPIRATION_SECONDS by default) or carries no id.
    """
    if max_age is None:
        max_age = TOKEN_EXPIRATION_SECONDS
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired as exc:
        raise InvalidToken("token expired") from exc
    except BadSignature as exc:
        raise InvalidToken("bad signature") from exc
    user_id = payload.get("id") if isinstance(payload, dict) else None
    if not isinstance(user_id, int):
        raise InvalidToken("token carries no user id")
    return user_id
