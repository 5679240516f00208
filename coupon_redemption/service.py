import logging
from datetime import datetime
from typing import List, Optional

from .engine import RedemptionEngine
from .errors import CouponNotFound, DuplicateCode
from .models import Coupon, RepeatCount
from .repository import CouponRepository

logger = logging.getLogger(__name__)


class CouponService:
    """Entry point used by the HTTP layer: coupon CRUD plus redemption."""

    def __init__(self, repository: CouponRepository, engine: RedemptionEngine):
        self.repository = repository
        self.engine = engine

    def create_coupon(
        self,
        code: str,
        description: str,
        discountPercentage: float,
        expirationDate: datetime,
    ) -> Coupon:
        coupon = Coupon(
            code=code,
            description=description,
            discountPercentage=discountPercentage,
            expirationDate=expirationDate,
            repeatCounts=[],
        )
        if not self.repository.create(coupon):
            raise DuplicateCode(code)
        logger.info("Created coupon %s", code)
        return coupon

    def add_repeat_counts(self, code: str, repeat_counts: List[RepeatCount]) -> None:
        coupon = self.repository.find_by_code(code)
        if coupon is None:
            raise CouponNotFound(code)
        # replaces the whole policy list
        coupon.repeatCounts = list(repeat_counts)
        self.repository.save(coupon)

    def verify_coupon(self, code: str, user_id: Optional[str] = None) -> bool:
        return self.engine.verify(code, user_id)

    def apply_coupon(self, code: str, user_id: str) -> Coupon:
        return self.engine.apply(code, user_id)

    def get_coupon(self, code: str) -> Optional[Coupon]:
        return self.repository.find_by_code(code)

    def delete_coupon(self, code: str) -> bool:
        if self.repository.find_by_code(code) is None:
            return False
        # window counters are left to expire on their own
        self.repository.delete(code)
        logger.info("Deleted coupon %s", code)
        return True
