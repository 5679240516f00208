import logging
from typing import Optional

from pydantic import ValidationError

from .errors import CorruptCouponRecord
from .logic import coupon_key, user_counter_key
from .models import Coupon
from .storage import CounterStore

logger = logging.getLogger(__name__)


class CouponRepository:
    """Coupon records and per-user window counters stored as plain keys."""

    def __init__(self, store: CounterStore):
        self.store = store

    def find_by_code(self, code: str) -> Optional[Coupon]:
        raw = self.store.get(coupon_key(code))
        if raw is None:
            return None
        try:
            return Coupon.model_validate_json(raw)
        except ValidationError as exc:
            logger.error("Malformed coupon record under %s", coupon_key(code))
            raise CorruptCouponRecord(code) from exc

    def create(self, coupon: Coupon) -> bool:
        """Store a new record; False if the code is already taken."""
        return self.store.set_if_absent(coupon_key(coupon.code), coupon.model_dump_json())

    def save(self, coupon: Coupon) -> None:
        self.store.set(coupon_key(coupon.code), coupon.model_dump_json())

    def delete(self, code: str) -> None:
        self.store.delete(coupon_key(code))

    def increment_user_count(
        self, code: str, user_id: str, policy_type: str, ttl_seconds: int
    ) -> int:
        key = user_counter_key(code, user_id, policy_type)
        return self.store.increment_and_expire(key, ttl_seconds)

    def get_user_count(self, code: str, user_id: str, policy_type: str) -> int:
        count = self.store.get(user_counter_key(code, user_id, policy_type))
        return int(count) if count else 0
