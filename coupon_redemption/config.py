from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LockScope(str, Enum):
    """Granularity of the redemption lock.

    ``USER`` locks one (code, user) pair, so different users of the same
    coupon redeem concurrently and may race on GLOBAL_TOTAL. ``COUPON`` locks
    the whole code and serializes every redemption of it.
    """

    USER = "user"
    COUPON = "coupon"


class Settings(BaseSettings):
    """Service settings read from ``COUPON_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="COUPON_", env_file=".env", extra="ignore"
    )

    app_name: str = "Coupon Redemption Service"
    redis_url: str = "redis://localhost:6379/0"
    lock_ttl_ms: int = Field(default=5000, gt=0)
    lock_scope: LockScope = LockScope.USER
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000


@lru_cache
def get_settings() -> Settings:
    return Settings()
