import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config.database import init_db
from shared.config.redis import init_redis
from shared.config.settings import settings
from shared.errors import PaperboyError
from apps.dependencies import paperboy_error_handler
from apps.portal.backend.routers import (
    auth_router,
    dashboard_router,
    payments_router,
    plans_router,
    subscriptions_router,
)

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Database initialized")
    await init_redis()
    logger.info("Redis initialized")
    # The deployment attaches its phone verification provider here:
    # app.state.identity_provider = <IdentityProvider implementation>
    yield


app = FastAPI(
    title="Paperboy Subscriber API",
    description="Plans, subscriptions, deliveries and payments for newspaper subscribers",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.portal_cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(PaperboyError, paperboy_error_handler)

app.include_router(auth_router.router, prefix="/api/auth", tags=["Auth"])
app.include_router(plans_router.router, prefix="/api/plans", tags=["Plans"])
app.include_router(dashboard_router.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(subscriptions_router.router, prefix="/api/subscriptions", tags=["Subscriptions"])
app.include_router(payments_router.router, prefix="/api/payments", tags=["Payments"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "portal-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
