"""
CareNotes Backend - Bearer Token Authentication
================================================

What:  Signs and verifies the JWTs that identify the acting member of staff.
How:   python-jose HS256 tokens; the "sub" claim is the actor recorded in
       created_by / updated_by / approved_by columns.
Who:   get_current_actor is a dependency of every /api router.

With AUTH_ENABLED=false every request acts as "system" (local development).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from carenotes.config import settings
from carenotes.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

# auto_error=False so a missing header surfaces as our 401, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    """Issues a signed token for subject."""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.jwt_expire_minutes
    )
    claims = {"sub": subject, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> str:
    """
    Returns the token's subject.

    Raises:
        AuthenticationError: Bad signature, expired, or no subject
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.info("Rejected bearer token: %s", str(e))
        raise AuthenticationError() from e

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Token has no subject")
    return subject


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if not settings.auth_enabled:
        return SYSTEM_ACTOR
    if credentials is None:
        raise AuthenticationError("Missing bearer token")
    return decode_token(credentials.credentials)
