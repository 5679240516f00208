from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class RepeatCountType(str, Enum):
    GLOBAL_TOTAL = "GLOBAL_TOTAL"
    USER_TOTAL = "USER_TOTAL"
    USER_DAILY = "USER_DAILY"
    USER_WEEKLY = "USER_WEEKLY"


# Policies that also keep a per-user counter with an expiry window
WINDOWED_TYPES = (RepeatCountType.USER_DAILY, RepeatCountType.USER_WEEKLY)


class RepeatCount(BaseModel):
    type: RepeatCountType
    limit: int = Field(ge=0)
    current: int = Field(default=0, ge=0)


class Coupon(BaseModel):
    code: str
    description: str
    discountPercentage: float
    expirationDate: datetime

    # type values are expected to be unique, not enforced
    repeatCounts: List[RepeatCount] = Field(default_factory=list)


class CreateCouponRequest(BaseModel):
    code: str
    description: str
    discountPercentage: float
    expirationDate: datetime


class AddRepeatCountsRequest(BaseModel):
    code: str
    repeatCounts: List[RepeatCount]


class VerifyCouponRequest(BaseModel):
    code: str
    userId: Optional[str] = None


class VerifyCouponResponse(BaseModel):
    isValid: bool


class ApplyCouponRequest(BaseModel):
    code: str
    userId: str = Field(min_length=1)


class MessageResponse(BaseModel):
    message: str
