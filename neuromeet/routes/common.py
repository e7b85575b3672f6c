import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from neuromeet.database import drop_legacy_sessions_table, ensure_rating_schema, ensure_user_schema

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    logger.error('Database error: %s', exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        ensure_user_schema()
        ensure_rating_schema()
        drop_legacy_sessions_table()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


def forbid_unless_self_or_admin(current_user, user_id: int, detail: str = 'You are not allowed to perform this action.') -> None:
    if current_user.id != user_id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
