import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from shared.config.database import init_db
from shared.config.redis import init_redis
from shared.config.settings import settings
from shared.errors import PaperboyError
from apps.dependencies import paperboy_error_handler, verify_admin
from apps.admin.backend.routers import (
    deliveries_router,
    payments_router,
    subscribers_router,
    subscriptions_router,
)

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Database initialized")
    await init_redis()
    yield


app = FastAPI(
    title="Paperboy Admin API",
    description="Subscriber, subscription, delivery and payment oversight",
    version="1.0.0",
    lifespan=lifespan
)

allowed_origins = settings.admin_cors_origins.split(",")

# CORS middleware for the admin frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(PaperboyError, paperboy_error_handler)

# Every admin route requires an admin session
app.include_router(
    subscribers_router.router,
    prefix="/api/subscribers",
    tags=["Subscribers"],
    dependencies=[Depends(verify_admin)]
)

app.include_router(
    subscriptions_router.router,
    prefix="/api/subscriptions",
    tags=["Subscriptions"],
    dependencies=[Depends(verify_admin)]
)

app.include_router(
    deliveries_router.router,
    prefix="/api/deliveries",
    tags=["Deliveries"],
    dependencies=[Depends(verify_admin)]
)

app.include_router(
    payments_router.router,
    prefix="/api/payments",
    tags=["Payments"],
    dependencies=[Depends(verify_admin)]
)


@app.get("/")
async def root():
    return {
        "message": "Paperboy Admin API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "admin-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
