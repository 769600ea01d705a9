import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from billing_api.core.config import settings
from billing_api.core.logging_config import setup_logging
from billing_api.core.errors import register_exception_handlers

# ✅ Import All API Routes
from billing_api.api.routes import (
    auth,
    customers,
    subscriptions,
    invoices,
    payment_methods,
    notifications,
    billing_webhook,
    health,
)

logger = logging.getLogger(__name__)


# ============================================
# ✅ LIFESPAN (LOGGING + DATABASE)
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL, settings.LOG_DIR)

    if settings.RUN_MIGRATIONS:
        from billing_api.db.migrate import run_migrations
        run_migrations()
    else:
        from billing_api.db.init_db import init_db
        init_db()

    logger.info(f"Billing API started: environment={settings.ENVIRONMENT}")
    yield
    logger.info("Billing API shutting down")


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Subscription Billing API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)

register_exception_handlers(app)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(auth.router)
app.include_router(customers.router)
app.include_router(subscriptions.router)
app.include_router(invoices.router)
app.include_router(payment_methods.router)
app.include_router(notifications.router)
app.include_router(billing_webhook.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "Subscription Billing API running"}
