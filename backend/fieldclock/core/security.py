"""Bearer-token authentication.

Login happens at the identity provider; this API only verifies the signed
token it issues and loads the matching user.
"""
import logging
from datetime import timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from fieldclock.core.clock import now_utc
from fieldclock.core.config import settings
from fieldclock.core.database import get_db
from fieldclock.models.user import User, UserRole

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

ADMIN_ROLES = (UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value)
PHOTO_REVIEW_ROLES = (UserRole.SUPERVISOR.value,) + ADMIN_ROLES


def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    expire = now_utc() + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {"sub": str(user_id), "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
        user_id = int(payload.get("sub"))
    except (jwt.PyJWTError, TypeError, ValueError) as e:
        logger.debug(f"Rejected token: {e}")
        raise unauthorized

    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.status != "active":
        raise unauthorized
    return user


def require_admin(user: User):
    if (user.role or "").lower() not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Admin access required")


def require_photo_reviewer(user: User):
    if (user.role or "").lower() not in PHOTO_REVIEW_ROLES:
        raise HTTPException(status_code=403, detail="Supervisor or admin access required")
