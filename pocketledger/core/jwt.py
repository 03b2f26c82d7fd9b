import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from ..config import settings


class TokenError(Exception):
    pass


class MalformedToken(TokenError):
    pass


class ExpiredToken(TokenError):
    pass


def _secret() -> str:
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is not configured")
    return settings.jwt_secret


def mint(user_id: uuid.UUID, now: Optional[datetime] = None) -> str:
    """Issue a signed session token for ``user_id`` valid for ``jwt_expire_days``."""
    now = now or datetime.now(timezone.utc)
    expire = now + timedelta(days=settings.jwt_expire_days)
    to_encode = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(to_encode, _secret(), algorithm=settings.jwt_algorithm)


def validate(token: str) -> uuid.UUID:
    """Return the user id embedded in ``token``.

    Raises ExpiredToken when the signature is good but ``exp`` has passed and
    MalformedToken for anything that does not decode to a UUID subject.
    Whether that user may still use the API is for the caller to decide.
    """
    try:
        payload = jwt.decode(
            token,
            _secret(),
            algorithms=[settings.jwt_algorithm],
            options={"require_exp": True, "require_sub": True},
        )
    except ExpiredSignatureError as e:
        raise ExpiredToken("Token expired") from e
    except JWTError as e:
        raise MalformedToken("Invalid token") from e

    try:
        return uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError) as e:
        raise MalformedToken("Invalid token: bad subject format") from e
