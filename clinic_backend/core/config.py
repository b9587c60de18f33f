import os
from datetime import time

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_time(value: str | None, default: time) -> time:
    if not value:
        return default
    hours, minutes = value.strip().split(":")
    return time(int(hours), int(minutes))


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)
STORE_TIMEOUT_SECONDS = int(os.getenv("STORE_TIMEOUT_SECONDS", "5"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:5173"])

BUSINESS_OPEN_TIME = _get_time(os.getenv("BUSINESS_OPEN_TIME"), time(7, 0))
BUSINESS_CLOSE_TIME = _get_time(os.getenv("BUSINESS_CLOSE_TIME"), time(18, 0))
BOOKING_CAP = int(os.getenv("BOOKING_CAP", "5"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if BUSINESS_OPEN_TIME >= BUSINESS_CLOSE_TIME:
        raise RuntimeError("BUSINESS_OPEN_TIME must be earlier than BUSINESS_CLOSE_TIME.")
    if BOOKING_CAP < 1:
        raise RuntimeError("BOOKING_CAP must be a positive integer.")
