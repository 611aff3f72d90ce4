# 请求日志中间件

import time
import uuid
import logging
from fastapi import FastAPI, Request
from typing import Dict, Any

logger = logging.getLogger(__name__)


def setup_logging_middleware(app: FastAPI, config: Dict[str, Any]):
    """
    记录每个请求的方法、路径、状态码和耗时，并回写 X-Request-ID
    """

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = uuid.uuid4().hex[:8]
        start_time = time.perf_counter()

        logger.info(
            f"[{request_id}] {request.method} {request.url.path} - "
            f"Client: {request.client.host if request.client else 'unknown'}"
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"[{request_id}] ERROR - {str(e)} - Time: {time.perf_counter() - start_time:.3f}s")
            raise

        logger.info(f"[{request_id}] {response.status_code} - Time: {time.perf_counter() - start_time:.3f}s")
        response.headers["X-Request-ID"] = request_id
        return response
