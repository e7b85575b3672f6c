from datetime import datetime, timedelta, timezone

import jwt

from neuromeet.core import config


class InvalidSubjectError(jwt.InvalidTokenError):
    pass


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    if not user_id:
        raise ValueError("A user id is required to issue a token.")

    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    payload = {"sub": str(user_id), "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def user_id_from_token(token: str) -> int:
    """Decode ``token`` and return the user id it was issued for."""
    subject = decode_access_token(token).get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise InvalidSubjectError(f"Token subject {subject!r} is not a user id") from exc
