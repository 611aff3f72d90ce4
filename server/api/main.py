# FastAPI主应用

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# 导入配置和中间件
from utils.config import Config
from utils.logger import setup_logging
from utils.response import create_success_response, create_error_response
from api.middleware import setup_middleware

# 导入所有路由
from api.auth import auth_router
from api.checkout import checkout_router
from api.menu import menu_router
from api.orders import orders_router
from api.packages import packages_router
from api.settings import settings_router
from api.webhooks import webhooks_router

# 全局配置实例
config = Config()

# 设置日志
setup_logging(config.config)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info(f"{config.get('app.name')} 启动中...")
    logger.info(f"环境: {config.env}")
    logger.info(f"支付网关: {'已配置' if config.get('payment.stripe_secret_key') else '未配置'}")
    logger.info(f"邮件服务: {'SMTP2GO' if config.get('email.smtp2go_api_key') else '日志输出'}")

    yield

    logger.info(f"{config.get('app.name')} 关闭中...")


# 创建FastAPI应用
app = FastAPI(
    title=config.config['app']['name'],
    version=config.config['app']['version'],
    description=config.config['app'].get('description', ''),
    debug=config.config['app'].get('debug', False),
    lifespan=lifespan
)

# 设置中间件
setup_middleware(app, config.config)

# 注册路由
app.include_router(auth_router, tags=["认证"])
app.include_router(checkout_router, tags=["结算"])
app.include_router(webhooks_router, tags=["回调"])
app.include_router(orders_router, tags=["订单"])
app.include_router(menu_router, tags=["菜单"])
app.include_router(packages_router, tags=["套餐"])
app.include_router(settings_router, tags=["设置"])


# 全局异常处理器
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    """HTTP异常处理"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail),
        headers=getattr(exc, "headers", None)
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": [str(part) for part in error.get("loc", [])], "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    """请求体格式错误"""
    logger.info(f"请求参数校验失败: {request.url.path} {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content=create_error_response("Invalid request body", data={"errors": jsonable_errors(exc)})
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """通用异常处理"""
    logger.error(f"未处理的异常: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=create_error_response("Internal server error")
    )


# 根路径
@app.get("/")
async def root():
    """根路径健康检查"""
    return create_success_response(data={
        "name": config.config['app']['name'],
        "version": config.config['app']['version'],
        "status": "healthy"
    })


# 健康检查端点
@app.get("/health")
async def health_check():
    """健康检查端点"""
    return create_success_response(data={
        "status": "healthy",
        "version": config.config['app']['version'],
        "environment": config.env
    })


# API信息端点
@app.get("/api/info")
async def api_info():
    """API信息端点"""
    return create_success_response(data={
        "name": config.config['app']['name'],
        "version": config.config['app']['version'],
        "description": config.config['app'].get('description', ''),
        "environment": config.env,
        "endpoints": {
            "auth": "/api/auth",
            "checkout": "/api/checkout",
            "webhooks": "/api/webhooks/stripe",
            "orders": "/api/orders",
            "menu": "/api/menu",
            "settings": "/api/settings"
        }
    })


if __name__ == "__main__":
    import uvicorn

    # 从配置获取服务器设置
    server_config = config.config['server']

    uvicorn.run(
        "api.main:app",
        host=server_config.get('host', '127.0.0.1'),
        port=server_config.get('port', 8000),
        reload=server_config.get('reload', False),
        workers=1 if server_config.get('reload', False) else server_config.get('workers', 1),
        log_level="debug" if config.config['app'].get('debug') else "info"
    )
