from datetime import datetime

import fakeredis
import pytest

from coupon_redemption.engine import RedemptionEngine
from coupon_redemption.repository import CouponRepository
from coupon_redemption.service import CouponService
from coupon_redemption.storage import RedisCounterStore

# Wednesday
FIXED_NOW = datetime(2024, 1, 10, 12, 0, 0)


@pytest.fixture
def redis_client():
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def store(redis_client):
    return RedisCounterStore(redis_client)


@pytest.fixture
def repository(store):
    return CouponRepository(store)


@pytest.fixture
def engine(repository):
    return RedemptionEngine(repository, clock=lambda: FIXED_NOW)


@pytest.fixture
def service(repository, engine):
    return CouponService(repository, engine)
