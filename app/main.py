# app/main.py

from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.database import engine
from app.routers import users
from app.services.cache_factory import build_cache_service, local_backend_of
from app.sweeper import ExpirySweeper
from app.config import CACHE_SWEEP_INTERVAL_SECONDS

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: pick the cache backend once for the life of the process
    cache = build_cache_service()
    app.state.cache = cache
    logger.info("Cache backend: %s", cache.backend_name)

    sweeper = None
    local = local_backend_of(cache.backend)
    if CACHE_SWEEP_INTERVAL_SECONDS > 0 and local is not None:
        sweeper = ExpirySweeper(local, CACHE_SWEEP_INTERVAL_SECONDS)
        await sweeper.start()
    try:
        yield
    finally:
        if sweeper is not None:
            await sweeper.stop()
        await cache.close()

app = FastAPI(lifespan=lifespan)
app.include_router(users.router)

@app.get("/health")
def health_check(request: Request):
    cache_backend = request.app.state.cache.backend_name
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ok", "db": "connected", "cache": cache_backend}
    except SQLAlchemyError as e:
        return {"status": "error", "db": str(e), "cache": cache_backend}
