"""
REST API客户端基类

提供通用的HTTP请求功能，包括：
- 仅对幂等请求自动重试
- 错误处理
- 请求/响应日志
- 超时控制
"""
import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.logging_config import get_logger

logger = get_logger(__name__)


class HTTPMethod(Enum):
    """HTTP方法枚举"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass
class APIResponse:
    """API响应封装"""
    status_code: int
    headers: Dict[str, str]
    data: Any
    raw_content: bytes
    elapsed_ms: float
    request_id: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    def json(self) -> Any:
        if self.data is not None:
            return self.data
        return json.loads(self.raw_content)


class APIError(Exception):
    """API错误基类"""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[APIResponse] = None,
        timeout: bool = False,
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        self.timeout = timeout
        super().__init__(self.message)

    def __str__(self):
        if self.status_code:
            return f"{self.message} | Status: {self.status_code}"
        return self.message


class RetryableAPIError(APIError):
    """可重试的API错误"""


RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class BaseAPIClient:
    """
    REST API客户端基类

    `idempotent=True` 的请求才会重试；购买、退款等写操作只发送一次。
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[httpx.Timeout] = None,
        max_retries: int = 2,
        retry_delay: float = 0.2,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout or httpx.Timeout(10.0)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.default_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if headers:
            self.default_headers.update(headers)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """获取或创建HTTP客户端"""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def aclose(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    @staticmethod
    def _error_message(response: APIResponse) -> str:
        data = response.data
        if isinstance(data, dict):
            for key in ("detail", "message", "error"):
                if data.get(key):
                    return str(data[key])
        return f"API request failed with status {response.status_code}"

    async def _send_once(self, method: str, url: str, **kwargs) -> APIResponse:
        start_time = datetime.now()
        response = await self.client.request(method=method, url=url, headers=self.default_headers, **kwargs)
        elapsed = (datetime.now() - start_time).total_seconds() * 1000

        response_data = None
        if "application/json" in response.headers.get("content-type", ""):
            try:
                response_data = response.json()
            except json.JSONDecodeError:
                response_data = None

        api_response = APIResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            data=response_data,
            raw_content=response.content,
            elapsed_ms=elapsed,
            request_id=response.headers.get("x-request-id"),
        )
        logger.debug(
            "api_response",
            method=method,
            url=url,
            status_code=api_response.status_code,
            elapsed_ms=round(elapsed, 2),
        )
        if api_response.is_error:
            error_cls = RetryableAPIError if api_response.status_code in RETRY_STATUS_CODES else APIError
            raise error_cls(self._error_message(api_response), api_response.status_code, api_response)
        return api_response

    async def _request(
        self,
        method: Union[str, HTTPMethod],
        endpoint: str,
        *,
        idempotent: bool = False,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        if isinstance(method, HTTPMethod):
            method = method.value
        url = self._build_url(endpoint)
        attempts = self.max_retries + 1 if idempotent else 1

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.retry_delay, min=self.retry_delay, max=self.retry_delay * 8),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError, RetryableAPIError)),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send_once(method, url, params=params, json=json_data)
        except httpx.TimeoutException as exc:
            raise APIError(f"Request timeout: {method} {endpoint}", timeout=True) from exc
        except httpx.NetworkError as exc:
            raise APIError(f"Network error: {exc}") from exc

    async def get(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request(HTTPMethod.GET, endpoint, idempotent=True, **kwargs)

    async def post(self, endpoint: str, *, idempotent: bool = False, **kwargs) -> APIResponse:
        return await self._request(HTTPMethod.POST, endpoint, idempotent=idempotent, **kwargs)
