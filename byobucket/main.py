from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from byobucket.api.v1.router import router as api_router
from byobucket.config import settings
from byobucket.core.crypto import SecretCipher
from byobucket.db.session import build_engine, build_sessionmaker
from byobucket.provisioning.orchestrator import ProvisioningOrchestrator
from byobucket.provisioning.queue import WorkQueue
from byobucket.store.credential_store import CredentialStore


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[type-arg]
    _configure_logging()
    logger = logging.getLogger(__name__)

    # Missing or malformed encryption keys are fatal: nothing can be stored or read.
    cipher = SecretCipher(settings.fernet_keys)
    engine = build_engine(settings.database_url)
    store = CredentialStore(build_sessionmaker(engine), cipher)
    work_queue = WorkQueue(workers=settings.worker_count)
    await work_queue.start()

    app.state.store = store
    app.state.work_queue = work_queue
    app.state.orchestrator = ProvisioningOrchestrator(
        store,
        compensate_failed_creates=settings.compensate_failed_creates,
    )
    logger.info("Starting byobucket add-on service", extra={"env": settings.app_env})
    yield
    logger.info("Shutting down byobucket add-on service")
    await work_queue.stop()
    await engine.dispose()


app = FastAPI(
    title="byobucket",
    version="1.0.0",
    description="Heroku add-on provisioning S3 buckets in the app owner's own AWS account",
    lifespan=lifespan,
)


app.include_router(api_router, prefix="/api/v1")


@app.get("/api/v1/health", tags=["health"])
async def health() -> dict[str, Any]:
    return {"status": "ok", "env": settings.app_env}
