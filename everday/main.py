import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

# Load env before settings are read
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from everday.core.config import settings, validate_config
from everday.core.database import reset_engine
from everday.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from everday.core.logging import configure_logging
from everday.core.middleware.session_id import SessionIdMiddleware
from everday.api import habits, health, items, migrate, profile
from everday.features.store.service import get_store

configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("everday")
    logger.info("Starting EverDay backend...")
    app.state.startup_time = time.time()
    app.state.store = get_store()
    logger.info(f"Authoritative store: {type(app.state.store).__name__}")
    try:
        yield
    finally:
        service = habits._service
        if service is not None:
            service.writer.shutdown(wait=True)
        reset_engine()
        logging.getLogger("everday").info("Stopping EverDay backend...")


app = FastAPI(title="EverDay - Backend", lifespan=lifespan)

app.add_middleware(SessionIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# CORS (adjust origins in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(migrate.router)
app.include_router(habits.router)
app.include_router(items.router)
app.include_router(profile.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("everday.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
