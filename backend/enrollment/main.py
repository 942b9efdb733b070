import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .redis_client import redis_client
from .routers import households, locations
from .services.outside_hours import post_commit_worker_loop

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    worker = asyncio.create_task(post_commit_worker_loop())
    try:
        yield
    finally:
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass


app = FastAPI(title="Food Parcel Enrollment API", lifespan=lifespan)
app.include_router(locations.router)
app.include_router(households.router)


@app.get("/health")
def health():
    try:
        redis_ok = bool(redis_client.ping())
    except Exception as e:
        logger.error(f"Redis ping failed: {e}")
        redis_ok = False
    return {"redis": redis_ok}
