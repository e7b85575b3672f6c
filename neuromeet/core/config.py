import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./neuromeet.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)

CORS_ORIGINS = _get_list(
    os.getenv("CORS_ORIGINS"),
    ["http://localhost:8081", "http://localhost:19006"],
)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
# Tokens last 30 days; there is no refresh flow.
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", str(60 * 24 * 30)))

DEFAULT_SESSION_PRICE = Decimal(os.getenv("DEFAULT_SESSION_PRICE", "500.00"))

# Client side settings
NEUROMEET_API_URL = os.getenv("NEUROMEET_API_URL", "http://localhost:5000/api")
CALENDAR_WINDOW_DAYS = int(os.getenv("CALENDAR_WINDOW_DAYS", "30"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
