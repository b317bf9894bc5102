"""Document pipeline: FastAPI entrypoint (documents API + health check)."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.documents import router as documents_router
from api.errors import register_error_handlers
from src.core.config import settings
from src.core.db import check_connections, close_connections
from src.core.tasks.broker import broker

logging.basicConfig(level=getattr(logging, settings.log_level))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting document pipeline API...")
    if not broker.is_worker_process:
        await broker.startup()

    yield

    if not broker.is_worker_process:
        await broker.shutdown()
    await close_connections()
    logger.info("Shutting down document pipeline API...")


app = FastAPI(title="Document Pipeline", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(documents_router)
register_error_handlers(app)


@app.get("/health")
async def health():
    checks = {"api": "ok", **(await check_connections())}
    status = "ok" if all(v == "ok" for v in checks.values()) else "degraded"
    return {"status": status, **checks}
