from fastapi import APIRouter

from app.pdv.core.config import settings
from app.pdv.routers.auth import router as auth_router
from app.pdv.routers.deferred_payments import router as deferred_payments_router
from app.pdv.routers.health import router as health_router
from app.pdv.routers.metrics import router as metrics_router
from app.pdv.routers.payment_settings import router as payment_settings_router
from app.pdv.routers.pos_cash import router as pos_cash_router
from app.pdv.routers.pos_sales import router as pos_sales_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(auth_router, prefix="/pdv/auth", tags=["auth"])
api_router.include_router(pos_sales_router, tags=["pos-sales"])
api_router.include_router(pos_cash_router, tags=["pos-cash"])
api_router.include_router(deferred_payments_router, tags=["deferred-payments"])
api_router.include_router(payment_settings_router, tags=["settings"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
