"""
Bearer tokens identifying the acting employee

The authentication service issues the tokens; the engine only reads the
employee id from the "sub" claim. issue_token exists for service-to-service
callers and the test suite.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from settlement.core.config import settings


def issue_token(employee_id: int, expires_minutes: Optional[int] = None) -> str:
    """Signed token acting as employee_id"""
    lifetime = timedelta(minutes=expires_minutes or settings.JWT_EXPIRE_MINUTES)
    claims = {
        "sub": str(employee_id),
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def read_employee_id(token: str) -> int:
    """
    Employee id carried by a token.

    Raises:
        ValueError: bad signature, expired token, or missing/non-numeric subject
    """
    try:
        claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    subject = claims.get("sub")
    if subject is None:
        raise ValueError("Token has no subject")
    return int(subject)
