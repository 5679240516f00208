from datetime import datetime
from typing import Optional
from .models import Coupon, RepeatCount, RepeatCountType

SECONDS_PER_DAY = 24 * 60 * 60
DAILY_WINDOW_SECONDS = SECONDS_PER_DAY


def coupon_key(code: str) -> str:
    return f"coupon:{code}"


def user_counter_key(code: str, user_id: str, policy_type: str) -> str:
    return f"coupon:{code}:{user_id}:{policy_type}"


def lock_key(code: str, user_id: Optional[str] = None) -> str:
    # user_id=None gives the coupon-wide lock
    if user_id is None:
        return f"lock:{code}"
    return f"lock:{code}:{user_id}"


def is_exhausted(repeat_count: RepeatCount) -> bool:
    return repeat_count.current >= repeat_count.limit


def first_exhausted(coupon: Coupon) -> Optional[RepeatCount]:
    for repeat_count in coupon.repeatCounts:
        if is_exhausted(repeat_count):
            return repeat_count
    return None


def days_until_next_week(now: datetime) -> int:
    """
    Days left in the calendar week that starts on Sunday.
    Sunday -> 7, Monday -> 6, ... Saturday -> 1
    """
    weekday = now.isoweekday() % 7  # Sunday == 0
    return 7 - weekday


def window_ttl_seconds(policy_type: RepeatCountType, now: datetime) -> Optional[int]:
    """TTL for the per-user counter of a windowed policy, None for the others."""
    if policy_type == RepeatCountType.USER_DAILY:
        return DAILY_WINDOW_SECONDS
    if policy_type == RepeatCountType.USER_WEEKLY:
        return days_until_next_week(now) * SECONDS_PER_DAY
    return None
