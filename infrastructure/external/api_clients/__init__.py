"""
API客户端模块

外部 REST API 集成的 httpx 客户端基类（carrier 等）
"""
from .base import BaseAPIClient, APIResponse, APIError, RetryableAPIError

__all__ = [
    "BaseAPIClient",
    "APIResponse",
    "APIError",
    "RetryableAPIError",
]
