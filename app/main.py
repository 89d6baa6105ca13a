from contextlib import asynccontextmanager

from fastapi import FastAPI
from app.core.config import settings
from app.core.logger import logger
from app.core.redis import redis_client
from app.core.scheduler import IntervalScheduler
from app.db.session import async_session_maker, init_db
from app.middleware.log_middleware import LogMiddleware
from app.services.queue_monitor import BreakMonitor, QueueMonitor

@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()

    scheduler = IntervalScheduler()
    app.state.queue_monitor = QueueMonitor(async_session_maker, scheduler.clock)
    if settings.ENABLE_SCHEDULER:
        app.state.queue_monitor.register(scheduler)
        BreakMonitor(async_session_maker, scheduler.clock).register(scheduler)
        await scheduler.start()
        logger.info(f"Scheduler started with {len(scheduler.jobs)} job(s)")

    yield

    await scheduler.stop()
    await redis_client.close()

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

from fastapi.middleware.cors import CORSMiddleware

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LogMiddleware)

@app.get("/")
async def root():
    return {"message": "Welcome to ClinicQueue API"}

from app.api.api import api_router
app.include_router(api_router, prefix=settings.API_V1_STR)
