from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from ..database import get_session
from ..errors import Unauthorized
from ..models.user import User
from .jwt import ExpiredToken, MalformedToken, validate


# auto_error is off so a missing header goes through the same error envelope as a bad token
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/verify-otp", auto_error=False)


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> User:
    if not token:
        raise Unauthorized("Access denied. No token provided or invalid format.")

    try:
        user_id = validate(token)
    except ExpiredToken:
        raise Unauthorized("Token expired. Please login again.")
    except MalformedToken:
        raise Unauthorized("Invalid token.")

    # The signature alone is not enough: the user must still exist and be verified.
    user = session.get(User, user_id)
    if user is None:
        raise Unauthorized("User no longer exists.")
    if not user.is_verified:
        raise Unauthorized("Account not verified. Please verify your phone number.")
    return user
