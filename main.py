"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.access import public
from api.dependencies import enforce_access
from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import auth as auth_routes
from api.routes import posts as posts_routes
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from infrastructure.cache import init_redis_client, shutdown_redis_client
from infrastructure.database import create_tables
from infrastructure.seed import seed_rbac
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 开发环境自动建表并写入角色/权限；生产环境请先执行 scripts/seed.py
    if settings.auto_create_tables:
        await create_tables()
        async with SQLAlchemyUnitOfWork() as uow:
            await seed_rbac(uow)
        logger.info("database_initialized", message="Tables created and RBAC seeded")

    await init_redis_client()
    logger.info("application_started", environment=settings.ENVIRONMENT)

    yield

    await shutdown_redis_client()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="帖子 CRUD API：JWT 会话、刷新令牌轮转、第三方登录与 RBAC",
    # 全局守卫：所有路由默认需要认证，用 @public / @require_permissions 声明
    dependencies=[Depends(enforce_access)],
)

# 添加中间件（注意顺序：从下往上执行）
# 1. Request ID中间件（最先执行，为后续中间件提供request_id）
app.add_middleware(RequestIDMiddleware)

# 2. 日志中间件（依赖request_id）
app.add_middleware(LoggingMiddleware)

# 3. CORS中间件（Cookie 认证需要 allow_credentials）
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth_routes.router)
app.include_router(posts_routes.router)


@app.get("/", tags=["Root"])
@public
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc"
        },
        message="Welcome to Posts API"
    )


@app.get("/health", tags=["Health"])
@public
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"}, message="OK")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
