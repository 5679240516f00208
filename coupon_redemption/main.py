import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .config import get_settings
from .engine import RedemptionEngine
from .errors import CouponError, ErrorKind, LimitExceeded
from .logging_config import configure_logging
from .models import (
    AddRepeatCountsRequest,
    ApplyCouponRequest,
    Coupon,
    CreateCouponRequest,
    MessageResponse,
    VerifyCouponRequest,
    VerifyCouponResponse,
)
from .repository import CouponRepository
from .service import CouponService
from .storage import RedisCounterStore, get_redis

logger = logging.getLogger(__name__)

# ---------------------------
# Dependencies
# ---------------------------

def get_counter_store() -> RedisCounterStore:
    return RedisCounterStore(get_redis())


def get_coupon_service(
    store: RedisCounterStore = Depends(get_counter_store),
) -> CouponService:
    settings = get_settings()
    repository = CouponRepository(store)
    engine = RedemptionEngine(
        repository,
        lock_ttl_ms=settings.lock_ttl_ms,
        lock_scope=settings.lock_scope,
    )
    return CouponService(repository, engine)


# ---------------------------
# Error mapping
# ---------------------------

STATUS_BY_KIND = {
    ErrorKind.DUPLICATE_CODE: 400,
    ErrorKind.INVALID_COUPON: 400,
    ErrorKind.LIMIT_EXCEEDED: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.LOCK_CONTENTION: 409,
    ErrorKind.STORE_UNAVAILABLE: 503,
    ErrorKind.CORRUPT_RECORD: 500,
}


async def coupon_error_handler(request: Request, exc: CouponError) -> JSONResponse:
    body = {"message": str(exc), "error": exc.kind.value}
    if isinstance(exc, LimitExceeded):
        body["policyType"] = exc.policy_type

    headers = None
    if exc.kind == ErrorKind.LOCK_CONTENTION:
        headers = {"Retry-After": "1"}
    return JSONResponse(body, status_code=STATUS_BY_KIND[exc.kind], headers=headers)


# ---------------------------
# FastAPI App & Routes
# ---------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Connecting to Redis...")
    store_factory = app.dependency_overrides.get(get_counter_store, get_counter_store)
    if store_factory().ping():
        logger.info("Connected to Redis")
    else:
        logger.error("Redis is not reachable at startup")
    yield


app = FastAPI(title=get_settings().app_name, lifespan=lifespan)
app.add_exception_handler(CouponError, coupon_error_handler)

router = APIRouter(prefix="/api/coupons")


@app.get("/health")
def health_check(store: RedisCounterStore = Depends(get_counter_store)):
    return {"status": "ok", "redis": store.ping()}


@router.post("/create", response_model=Coupon, status_code=201)
def create_coupon(
    payload: CreateCouponRequest,
    service: CouponService = Depends(get_coupon_service),
):
    return service.create_coupon(
        payload.code,
        payload.description,
        payload.discountPercentage,
        payload.expirationDate,
    )


@router.post("/add-repeat-counts", response_model=MessageResponse)
def add_repeat_counts(
    payload: AddRepeatCountsRequest,
    service: CouponService = Depends(get_coupon_service),
):
    service.add_repeat_counts(payload.code, payload.repeatCounts)
    return MessageResponse(message="Repeat counts added successfully")


@router.post("/verify", response_model=VerifyCouponResponse)
def verify_coupon(
    payload: VerifyCouponRequest,
    service: CouponService = Depends(get_coupon_service),
):
    return VerifyCouponResponse(isValid=service.verify_coupon(payload.code, payload.userId))


@router.post("/apply", response_model=MessageResponse)
def apply_coupon(
    payload: ApplyCouponRequest,
    service: CouponService = Depends(get_coupon_service),
):
    service.apply_coupon(payload.code, payload.userId)
    return MessageResponse(message="Coupon applied successfully")


@router.get("/{code}", response_model=Coupon)
def get_coupon(code: str, service: CouponService = Depends(get_coupon_service)):
    coupon = service.get_coupon(code)
    if coupon is None:
        return JSONResponse({"message": "Coupon not found"}, status_code=404)
    return coupon


@router.delete("/{code}", response_model=MessageResponse)
def delete_coupon(code: str, service: CouponService = Depends(get_coupon_service)):
    if not service.delete_coupon(code):
        return JSONResponse({"message": "Coupon not found"}, status_code=404)
    return MessageResponse(message="Coupon deleted successfully")


app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "coupon_redemption.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )
