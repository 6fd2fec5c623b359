"""
容错模块

可恢复错误的指数退避重试
"""

from infra.resilience.retry import DEFAULT_RETRY, RetryConfig, retry_async

__all__ = [
    "DEFAULT_RETRY",
    "RetryConfig",
    "retry_async",
]
