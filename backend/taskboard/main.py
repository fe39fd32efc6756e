from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from taskboard.core.database import init_models
from taskboard.core.config import settings
from taskboard.core.broadcast import RedisEventSink, build_event_sink
from taskboard.core.exceptions import register_exception_handlers
from taskboard.core.logging import setup_logging
from taskboard.routers import admin, public, realtime
from taskboard.services.users import create_default_admin
import redis.asyncio as redis
import asyncio


def create_app() -> FastAPI:
    app = FastAPI(title="Taskboard API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(admin.router)
    app.include_router(public.router)
    app.include_router(realtime.router)

    redis_client = None
    if settings.BROADCAST_DRIVER.lower() == "redis":
        redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
    app.state.redis = redis_client
    app.state.event_sink = build_event_sink(redis_client)
    app.state.relay_task = None

    @app.on_event("startup")
    async def startup():
        setup_logging()
        await init_models()
        await create_default_admin()
        if isinstance(app.state.event_sink, RedisEventSink):
            app.state.relay_task = asyncio.create_task(realtime.supervise_relay(app.state.redis))
        logger.info(f"Taskboard API started (broadcast driver: {settings.BROADCAST_DRIVER})")

    @app.on_event("shutdown")
    async def shutdown():
        if app.state.relay_task is not None:
            app.state.relay_task.cancel()
            try:
                await app.state.relay_task
            except asyncio.CancelledError:
                pass
        if app.state.redis is not None:
            await app.state.redis.aclose()

    @app.get("/")
    async def root():
        return {"message": "Taskboard API is running"}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("taskboard.main:app", host="0.0.0.0", port=settings.API_PORT)
