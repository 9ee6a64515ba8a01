"""
请求/响应日志中间件

- 每个请求记录一条开始日志和一条结束日志（含耗时与状态码）
- 请求体仅在 DEBUG 或 X-Log-Body 头开启时记录，买家地址与联系方式脱敏
- webhook 原始报文参与验签，永不记录
"""
import json
import time
from typing import Any, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

# 买家 PII 与支付密钥
REDACTED_FIELDS = frozenset({
    "client_secret", "secret", "token", "api_key",
    "email", "phone", "name", "line1", "line2", "postal_code",
})


def redact(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: ("***" if str(k).lower() in REDACTED_FIELDS else redact(v)) for k, v in data.items()}
    if isinstance(data, list):
        return [redact(v) for v in data]
    return data


class LoggingMiddleware(BaseHTTPMiddleware):
    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}
    SKIP_BODY_PREFIXES = ("/api/v1/payments/webhooks",)

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.log_body_default: bool = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT
        self.max_body_bytes: int = settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        info = {"query_params": dict(request.query_params)}
        if request.method in ("POST", "PUT", "PATCH") and self._should_log_body(request):
            body = await self._body_snippet(request)
            if body is not None:
                info["body"] = body
        logger.info("request_started", **info)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=_elapsed_ms(started),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise

        duration_ms = _elapsed_ms(started)
        # path_params 在路由匹配后才可用（order_id / label_id / seller_id）
        fields = {"status_code": response.status_code, "duration_ms": duration_ms, **request.path_params}
        if response.status_code >= 500:
            logger.error("request_server_error", **fields)
        elif response.status_code >= 400:
            logger.warning("request_client_error", **fields)
        else:
            logger.info("request_completed", **fields)
        response.headers["X-Process-Time"] = f"{duration_ms / 1000:.3f}"
        return response

    def _should_log_body(self, request: Request) -> bool:
        if request.url.path.startswith(self.SKIP_BODY_PREFIXES):
            return False
        header = (request.headers.get("X-Log-Body") or "").lower()
        if header in {"true", "1", "yes"}:
            return True
        if header in {"false", "0", "no"}:
            return False
        return bool(self.log_body_default and settings.DEBUG)

    async def _body_snippet(self, request: Request) -> Optional[Any]:
        body = await request.body()
        if not body:
            return None
        text = body[: self.max_body_bytes].decode("utf-8", errors="ignore")
        if "application/json" not in request.headers.get("content-type", "").lower():
            return text
        try:
            return redact(json.loads(text))
        except ValueError:
            # 截断后的 JSON 无法解析，只记录长度
            return {"truncated_bytes": len(body)}


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
