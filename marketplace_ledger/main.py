"""
Marketplace Ledger — FastAPI Application.

This is the entry point for the application.
All routers are registered here.
"""

import logging

from fastapi import FastAPI

from marketplace_ledger.config import get_settings
from marketplace_ledger.api.health import router as health_router
from marketplace_ledger.api.credits import router as credits_router
from marketplace_ledger.api.recharge_codes import router as recharge_codes_router
from marketplace_ledger.api.settlements import router as settlements_router
from marketplace_ledger.api.daily_reports import router as daily_reports_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Credit ledger, settlements and cash reconciliation "
                "for a delivery marketplace",
    debug=settings.DEBUG,
)

# Register routers
app.include_router(health_router)
app.include_router(credits_router)
app.include_router(recharge_codes_router)
app.include_router(settlements_router)
app.include_router(daily_reports_router)
