"""Password hashing and staff access tokens.

The token only identifies the staff member. Role, capabilities and the
active flag are read from the staff row on every request, so a change made
by a manager applies without a new login.
"""
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
import jwt

from oilstock.config import settings


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_access_token(staff_id: int, expires_minutes: Optional[int] = None) -> str:
    issued = datetime.utcnow()
    lifetime = timedelta(minutes=expires_minutes or settings.jwt_expire_minutes)
    # PyJWT requires a string subject
    claims = {"sub": str(staff_id), "iat": issued, "exp": issued + lifetime}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def staff_id_from_token(token: str) -> Optional[int]:
    """Staff id carried by a valid, unexpired token, else None."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        return None
