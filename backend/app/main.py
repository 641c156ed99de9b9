# app/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import structlog

from app.api import messages
from app.api.deps import get_message_store
from app.core.circuit_breaker import limiter
from app.core.config import settings
from app.core.exceptions import (
    AnonDropError,
    StoreUnavailableError,
    anon_drop_exception_handler,
    global_exception_handler,
    validation_exception_handler,
)
from app.infra.mongo import close_mongo_client, ping_store
from app.utils.logger import setup_logger

setup_logger()
logger = structlog.get_logger()


def check_secrets():
    if not settings.uses_default_secrets:
        return
    if settings.ENVIRONMENT == "production":
        raise RuntimeError("ENCRYPTION_PEPPER and ENCRYPTION_SALT must be set in production")
    logger.warning("default_encryption_secrets", environment=settings.ENVIRONMENT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    check_secrets()
    logger.info("startup", project=settings.PROJECT_NAME)

    store = get_message_store()
    try:
        store.ensure_lookup_index(timeout=settings.STORE_TIMEOUT_SECONDS)
        state = store.ensure_retention_policy(timeout=settings.STORE_TIMEOUT_SECONDS)
        logger.info("retention_checked", state=state.value)
    except StoreUnavailableError:
        logger.warning("index_bootstrap_skipped", reason="store unavailable")

    yield

    close_mongo_client()
    logger.info("shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Anonymous message drop with encrypted, expiring storage",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Exception handlers
app.add_exception_handler(AnonDropError, anon_drop_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Register routers
app.include_router(messages.router, tags=["Messages"])


@app.get("/health")
def health_check():
    return {"status": "ok", "store": "up" if ping_store() else "down"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000)
