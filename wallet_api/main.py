import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from wallet_api.core.config import settings
from wallet_api.core.errors import register_exception_handlers
from wallet_api.db import dynamo
from wallet_api.routers import health, transactions, users
from wallet_api.utils.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: optional table bootstrap, then the keep-alive scheduler
    if settings.DYNAMO_CREATE_TABLES:
        created = dynamo.ensure_tables()
        logger.info(f"Table bootstrap done, created: {created or 'none'}")
    logger.info("Starting scheduler...")
    start_scheduler()
    yield
    # Shutdown: Stop the scheduler
    logger.info("Stopping scheduler...")
    stop_scheduler()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Register users, manage wallet transactions and statistics.",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")
    return response


# Root endpoint
@app.get("/")
def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}


# Register routers
app.include_router(health.router, prefix=f"{settings.API_PREFIX}", tags=["Health"])  # /api/health
app.include_router(users.router, prefix=f"{settings.API_PREFIX}/users", tags=["Users"])
app.include_router(transactions.router, prefix=f"{settings.API_PREFIX}/transactions", tags=["Transactions"])


def run():
    uvicorn.run("wallet_api.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
