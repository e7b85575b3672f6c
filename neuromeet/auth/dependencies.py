import logging

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from neuromeet.auth import jwt_handler
from neuromeet.database import get_db
from neuromeet.models.user import User

logger = logging.getLogger(__name__)

security = HTTPBearer()


def _load_user(token: str, db: Session) -> User:
    try:
        user_id = jwt_handler.user_id_from_token(token)
    except jwt_handler.InvalidSubjectError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject") from exc
    except jwt.PyJWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def get_current_user_any_status(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token without checking account status (pending therapists)."""
    return _load_user(credentials.credentials, db)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    user = _load_user(credentials.credentials, db)
    if user.status != "active":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Your account is not active. Please contact an administrator.",
        )
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required.")
    return current_user


def require_therapist(current_user: User = Depends(get_current_user)) -> User:
    if not (current_user.is_therapist or current_user.is_admin):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Therapist privileges required.")
    return current_user
