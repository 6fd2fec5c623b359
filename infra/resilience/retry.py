"""
重试机制模块

加载器本身不做重试；是否重试、重试几次由调用方决定（ProfileManager 的初始加载与热重载）。

只有"可能自行恢复"的错误才重试：
- 读取失败（文件暂不可读、远端 5xx / 网络抖动）
- 变更通知注册失败
解码失败、下游应用失败属于配置内容问题，重试无意义，直接抛出。
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from core.errors import LoadFailedError, NotifyRegistrationError
from logger import get_logger

logger = get_logger("resilience.retry")

ErrorTypes = Tuple[Type[BaseException], ...]


@dataclass
class RetryConfig:
    """重试默认参数"""
    max_retries: int = 2                    # 首次失败后的最多重试次数
    base_delay: float = 0.5                 # 第一次重试前的等待（秒）
    max_delay: float = 30.0                 # 单次等待上限（秒）
    exponential_base: float = 2.0
    retryable_errors: ErrorTypes = (
        ConnectionError,
        TimeoutError,
        asyncio.TimeoutError,
        LoadFailedError,
        NotifyRegistrationError,
    )


DEFAULT_RETRY = RetryConfig()


def _calculate_delay(attempt: int, base_delay: float, exponential_base: float, max_delay: float) -> float:
    """第 attempt 次重试（从 0 开始）前的等待时间"""
    return min(base_delay * (exponential_base ** attempt), max_delay)


async def retry_async(
    func: Callable[..., Awaitable[Any]],
    *args,
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    retryable_errors: Optional[ErrorTypes] = None,
    **kwargs
) -> Any:
    """
    调用协程函数，遇到可重试错误时按指数退避重试

    Args:
        func: 协程函数
        max_retries: 最多重试次数（None 使用 DEFAULT_RETRY）
        base_delay: 基础等待时间
        retryable_errors: 可重试的异常类型

    Returns:
        func 的返回值

    Raises:
        最后一次失败的异常；不可重试的异常立即抛出

    使用示例:
        config = await retry_async(loader.load, "file", "conf", params, max_retries=3)
    """
    retries = DEFAULT_RETRY.max_retries if max_retries is None else max_retries
    delay_base = DEFAULT_RETRY.base_delay if base_delay is None else base_delay
    errors = retryable_errors or DEFAULT_RETRY.retryable_errors
    operation = getattr(func, "__qualname__", repr(func))

    attempt = 0
    while True:
        try:
            result = await func(*args, **kwargs)
        except errors as e:
            if attempt >= retries:
                logger.error(f"❌ {operation} 失败，已重试 {retries} 次: {e}")
                raise
            delay = _calculate_delay(attempt, delay_base, DEFAULT_RETRY.exponential_base, DEFAULT_RETRY.max_delay)
            attempt += 1
            logger.warning(f"⚠️ {operation} 失败，{delay:.2f}s 后第 {attempt}/{retries} 次重试: {e}")
            await asyncio.sleep(delay)
            continue

        if attempt:
            logger.info(f"✅ {operation} 第 {attempt} 次重试成功")
        return result
