"""
HTTP 远端存储

从远端 URL 拉取配置（订阅地址、配置中心等），通过 ETag / 内容摘要轮询变更。
"""

import asyncio
import hashlib
from typing import Dict, Optional
from urllib.parse import urlparse

import httpx

from core.errors import (
    BackendConstructionError,
    LoadFailedError,
    NotifyRegistrationError,
    PersistFailedError,
    StorageNotFoundError,
)
from infra.storage.base import NotifyCallback, StorageBackend, optional_param, parse_interval
from logger import get_logger

logger = get_logger("storage.http")


class HttpStorage(StorageBackend):
    """
    HTTP 远端存储

    参数：
    - url: 远端地址（必填，http / https）
    - name: 显示名称（默认取 URL 路径最后一段，否则为主机名）
    - timeout: 请求超时（秒，默认 10）
    - poll_interval: 变更轮询间隔（秒，默认 30）
    - method: 写回使用的 HTTP 方法（默认 PUT）

    Usage:
        storage = HttpStorage({"url": "https://example.com/main.conf"})
        data = await storage.load()
    """

    def __init__(self, params: Dict[str, str], transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__()
        url = optional_param(params, "url")
        if not url:
            raise BackendConstructionError("http 存储缺少参数 url")

        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise BackendConstructionError(f"http 存储 url 不合法: {url}")

        self.url = url
        self.display_name = (
            optional_param(params, "name")
            or parsed.path.rstrip("/").rsplit("/", 1)[-1]
            or parsed.netloc
        )
        self.timeout = parse_interval(params, "timeout", 10.0)
        self.poll_interval = parse_interval(params, "poll_interval", 30.0)
        self.method = (optional_param(params, "method") or "PUT").upper()
        self._transport = transport

    def name(self) -> str:
        return self.display_name

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def load(self) -> bytes:
        """GET url"""
        response = await self._get()
        return response.content

    async def save(self, data: bytes) -> None:
        """按配置的方法写回远端"""
        try:
            async with self._client() as http:
                resp = await http.request(self.method, self.url, content=data)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise PersistFailedError(f"写回远端失败 {self.url}: {e}") from e

    async def register_notify(self, cancel_event: asyncio.Event, callback: NotifyCallback) -> None:
        """按 ETag（无 ETag 时按内容摘要）轮询远端变更"""
        try:
            initial = await self._fingerprint()
        except LoadFailedError as e:
            raise NotifyRegistrationError(f"无法监听远端 {self.url}: {e}") from e

        self._spawn_poller(
            cancel_event,
            callback,
            self._fingerprint,
            self.poll_interval,
            self.url,
            initial=initial,
        )
        logger.debug(f"👀 监听远端变更: {self.url} (interval={self.poll_interval}s)")

    async def _get(self) -> httpx.Response:
        try:
            async with self._client() as http:
                resp = await http.get(self.url)
        except httpx.HTTPError as e:
            raise LoadFailedError(f"请求远端失败 {self.url}: {e}") from e

        if resp.status_code == 404:
            raise StorageNotFoundError(f"远端不存在: {self.url}")
        if resp.is_error:
            raise LoadFailedError(f"请求远端失败 {self.url}: HTTP {resp.status_code}")
        return resp

    async def _fingerprint(self) -> str:
        try:
            resp = await self._get()
        except StorageNotFoundError:
            return ""
        etag = resp.headers.get("etag")
        if etag:
            return etag
        return hashlib.sha256(resp.content).hexdigest()
