# CORS中间件配置

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Dict, Any


def setup_cors_middleware(app: FastAPI, config: Dict[str, Any]):
    """
    设置CORS中间件，默认只放行店面前端地址
    """
    cors_config = config.get('cors', {})
    default_origins = [config.get('app', {}).get('base_url', 'http://localhost:3000').rstrip('/')]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config.get('allowed_origins', default_origins),
        allow_credentials=cors_config.get('allow_credentials', True),
        allow_methods=cors_config.get('allowed_methods', ["GET", "POST", "PUT", "DELETE"]),
        allow_headers=cors_config.get('allowed_headers', ["Authorization", "Content-Type"]),
    )
