# gymledger/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gymledger.middleware.errors import install_error_handlers
from gymledger.routes.billing import router as billing_router
from gymledger.routes.health import router as health_router
from gymledger.routes.memberships import router as memberships_router
from gymledger.utils.settings import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("gymledger.main")

app = FastAPI(
    title="Gym Ledger",
    version=settings.GYMLEDGER_VERSION,
    description="Gym membership lifecycle and billing ledger",
    docs_url="/docs" if settings.DOCS_ENABLED else None,
    redoc_url=None,
)

# -------------------------------------------------------------------
# Error handling (stable envelopes, no stack leaks)
# -------------------------------------------------------------------
install_error_handlers(app)

# -------------------------------------------------------------------
# CORS (front desk app, controlled)
# -------------------------------------------------------------------
if settings.CORS_ALLOW_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

# -------------------------------------------------------------------
# Routers
# -------------------------------------------------------------------
app.include_router(health_router)
app.include_router(memberships_router)
app.include_router(billing_router)


# -------------------------------------------------------------------
# Root
# -------------------------------------------------------------------
@app.get("/")
def root():
    return {
        "status": "Gym Ledger Online",
        "version": settings.GYMLEDGER_VERSION,
        "currency": settings.CURRENCY,
        "routes": [
            "/health",
            "/members/{member_id}/renew",
            "/members/{member_id}/reconcile",
            "/members/{member_id}/standing",
            "/members/{member_id}/pay-balance",
            "/members/{member_id}/refunds",
            "/members/{member_id}/reconcile-balance",
            "/members/{member_id}/transactions",
            "/invoices/{transaction_id}",
            "/facilities/{facility_id}/summary",
        ],
    }
