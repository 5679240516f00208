"""
Redemption engine.

``apply`` runs the whole verify/increment/persist sequence while holding a
lock taken with a conditional set that expires after ``lock_ttl_ms``. The
lock is advisory: if the holder runs past the TTL the key expires and a
second caller can enter, and the unconditional release at the end may then
delete that caller's lock. The TTL bounds how long a crashed holder blocks
others; it does not guarantee exclusion. A release that fails after a
redemption error is logged and the redemption error is raised; a release
that fails after a successful redemption raises StoreUnavailable.

With the default per-user lock scope, two different users redeeming the same
coupon are not serialized against each other and both read-modify-write the
embedded GLOBAL_TOTAL ``current``, so one increment can be lost. Set
``lock_scope=coupon`` to serialize per code instead.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional

from .config import LockScope
from .errors import (
    CouponNotFound,
    InvalidCoupon,
    LimitExceeded,
    LockContention,
    StoreUnavailable,
)
from .logic import first_exhausted, is_exhausted, lock_key, window_ttl_seconds
from .models import WINDOWED_TYPES, Coupon
from .repository import CouponRepository

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_MS = 5000


class RedemptionEngine:
    def __init__(
        self,
        repository: CouponRepository,
        lock_ttl_ms: int = DEFAULT_LOCK_TTL_MS,
        lock_scope: LockScope = LockScope.USER,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository
        self.lock_ttl_ms = lock_ttl_ms
        self.lock_scope = lock_scope
        self.clock = clock

    def verify(self, code: str, user_id: Optional[str] = None) -> bool:
        """
        True when no policy of the coupon is used up.

        Each policy is checked in order against its embedded ``current``;
        daily and weekly policies are also checked against the user's window
        counter when ``user_id`` is given. Stops at the first exhausted policy.
        """
        coupon = self.repository.find_by_code(code)
        if coupon is None:
            return False

        for repeat_count in coupon.repeatCounts:
            if is_exhausted(repeat_count):
                return False
            if user_id and repeat_count.type in WINDOWED_TYPES:
                used = self.repository.get_user_count(
                    code, user_id, repeat_count.type.value
                )
                if used >= repeat_count.limit:
                    return False

        return True

    def apply(self, code: str, user_id: str) -> Coupon:
        with self._lock(code, user_id):
            eligible = self.verify(code, user_id)

            coupon = self.repository.find_by_code(code)
            if coupon is None:
                if not eligible:
                    logger.info("Coupon %s not valid for user %s", code, user_id)
                    raise InvalidCoupon(code)
                raise CouponNotFound(code)

            # nothing is written unless every policy has headroom
            exhausted = first_exhausted(coupon)
            if exhausted is not None:
                logger.info(
                    "Coupon %s limit reached for %s", code, exhausted.type.value
                )
                raise LimitExceeded(code, exhausted.type.value)
            if not eligible:
                # only a daily/weekly window counter is used up
                logger.info("Coupon %s not valid for user %s", code, user_id)
                raise InvalidCoupon(code)

            now = self.clock()
            for repeat_count in coupon.repeatCounts:
                repeat_count.current += 1
                ttl = window_ttl_seconds(repeat_count.type, now)
                if ttl is not None and user_id:
                    self.repository.increment_user_count(
                        code, user_id, repeat_count.type.value, ttl
                    )

            self.repository.save(coupon)
            logger.info("Coupon %s applied for user %s", code, user_id)
            return coupon

    @contextmanager
    def _lock(self, code: str, user_id: str) -> Iterator[str]:
        if self.lock_scope == LockScope.COUPON:
            key = lock_key(code)
        else:
            key = lock_key(code, user_id)

        store = self.repository.store
        if not store.try_acquire(key, self.lock_ttl_ms):
            logger.warning("Lock %s is held, rejecting redemption", key)
            raise LockContention(code, key)
        try:
            yield key
        except BaseException:
            # a failed release must not mask the redemption error
            try:
                store.delete(key)
            except StoreUnavailable:
                logger.error("Failed to release lock %s", key, exc_info=True)
            raise
        store.delete(key)
