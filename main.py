"""
订单与支付交易引擎 - ASGI 入口

    uvicorn main:app --reload
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import admin, orders, webhooks
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger
from core.response import success_response
from infrastructure.database import create_tables, engine
from infrastructure.external.cache import get_redis_client, init_redis_client, shutdown_redis_client


logger = get_logger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DEBUG or settings.database.url.startswith("sqlite"):
        await create_tables()
        logger.info("database_tables_created", url_scheme=settings.database.url.split(":", 1)[0])
    else:
        logger.info("database_schema_managed_by_alembic")

    if settings.redis.url:
        try:
            await init_redis_client()
        except (RedisError, OSError) as exc:
            # 幂等缓存退化为直通，服务照常启动
            logger.error("redis_init_failed", error=str(exc))

    try:
        yield
    finally:
        gateway = getattr(app.state, "payment_gateway", None)
        if gateway is not None:
            await gateway.aclose()
        await shutdown_redis_client()
        await engine.dispose()
        logger.info("application_stopped")


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        description="服务端定价、幂等下单、网关支付、验签与 Webhook 对账",
        lifespan=lifespan,
    )

    # 后添加的先执行：RequestID 需在日志之前绑定上下文
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(RequestIDMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(application)

    for module in (orders, webhooks, admin):
        application.include_router(module.router, prefix=API_PREFIX)

    @application.get("/", tags=["Root"])
    async def root():
        return success_response(
            data={"name": settings.PROJECT_NAME, "version": settings.VERSION, "docs": "/docs"},
        )

    @application.get("/health", tags=["Health"])
    async def health():
        redis_client = get_redis_client()
        if redis_client is None:
            return success_response(data={"status": "healthy", "cache": "disabled"})
        stats = redis_client.stats
        return success_response(
            data={
                "status": "healthy",
                "cache": "up" if await redis_client.health_check() else "down",
                "cache_hit_rate": round(stats.hit_rate, 3),
                "cache_errors": stats.errors,
            }
        )

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
