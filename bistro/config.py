"""Runtime configuration for the app, read from the environment once at import.

Tests may swap values with `configure(...)`; everything else reads `settings()`.
"""
import logging
import os
import sys
from typing import NamedTuple, Tuple


class Settings(NamedTuple):
    database_url: str
    token_secret: str
    token_expires: int
    payment_provider: str
    stripe_secret_key: str | None
    payment_currency: str
    cors_origins: Tuple[str, ...]
    log_level: str


def _from_env() -> Settings:
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./bistro.db"),
        token_secret=os.getenv("ACCESS_TOKEN_SECRET", "dev-secret"),
        token_expires=int(os.getenv("ACCESS_TOKEN_EXPIRES", "3600")),  # 1 hour
        payment_provider=os.getenv("PAYMENT_PROVIDER", "mock").lower(),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
        payment_currency=os.getenv("PAYMENT_CURRENCY", "usd"),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


state = _from_env()


def settings() -> Settings:
    return state


def configure(**overrides) -> Settings:
    global state
    state = state._replace(**overrides)
    return state


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the root logger once for the whole process."""
    logging.basicConfig(
        level=level or state.log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return logging.getLogger("bistro")
