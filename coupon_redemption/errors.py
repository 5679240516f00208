from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    DUPLICATE_CODE = "DUPLICATE_CODE"
    NOT_FOUND = "NOT_FOUND"
    LOCK_CONTENTION = "LOCK_CONTENTION"
    INVALID_COUPON = "INVALID_COUPON"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    CORRUPT_RECORD = "CORRUPT_RECORD"


class CouponError(Exception):
    """Base for every failure the core reports to its caller.

    ``kind`` names the failure so the HTTP layer can map it to a response
    without inspecting the concrete class.
    """

    kind: ErrorKind

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class DuplicateCode(CouponError):
    kind = ErrorKind.DUPLICATE_CODE

    def __init__(self, code: str):
        super().__init__("Coupon with this code already exists", code)


class CouponNotFound(CouponError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, code: str):
        super().__init__("Coupon not found", code)


class LockContention(CouponError):
    """Another redemption for the same lock key is in flight. Retryable."""

    kind = ErrorKind.LOCK_CONTENTION

    def __init__(self, code: str, lock_key: str):
        super().__init__("Failed to acquire lock. Try again later.", code)
        self.lock_key = lock_key


class InvalidCoupon(CouponError):
    kind = ErrorKind.INVALID_COUPON

    def __init__(self, code: str):
        super().__init__("Invalid coupon", code)


class LimitExceeded(InvalidCoupon):
    """An embedded policy counter is already at its limit."""

    kind = ErrorKind.LIMIT_EXCEEDED

    def __init__(self, code: str, policy_type: str):
        CouponError.__init__(self, f"Coupon limit reached for {policy_type}", code)
        self.policy_type = policy_type


class StoreUnavailable(CouponError):
    kind = ErrorKind.STORE_UNAVAILABLE

    def __init__(self, operation: str, key: Optional[str] = None):
        super().__init__(f"Counter store operation failed: {operation}")
        self.operation = operation
        self.key = key


class CorruptCouponRecord(CouponError):
    kind = ErrorKind.CORRUPT_RECORD

    def __init__(self, code: str):
        super().__init__("Stored coupon record is malformed", code)
