"""OpenRouter Provider 适配器。

接口与 OpenAI 兼容，使用 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>
- 流式: 请求体 stream=true，Accept: text/event-stream，响应为逐行的 "data: ..." 文本。

不做任何自动重试；传输层错误与非 2xx 状态一律转换为 domain.exceptions 中的异常向上抛出。
"""

import asyncio
from contextlib import aclosing
from typing import AsyncIterator, Dict, Optional

import httpx
from pydantic import ValidationError as SchemaError

from chat_relay.config.settings import settings
from chat_relay.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from chat_relay.domain.models import ChatPayload, CompletionResponse
from chat_relay.infrastructure.logging.logger import logger


class OpenRouterClient:
    """OpenRouter Provider 客户端实现。"""

    name = "openrouter"

    def __init__(self, cfg=settings):
        self._settings = cfg

    # ---- 非流式 ----

    async def complete(self, payload: ChatPayload) -> CompletionResponse:
        self._require_api_key()
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    self._url(),
                    json=payload.model_dump(),
                    headers=self._headers(stream=False),
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=502)
        self._check_status(resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="BAD_RESPONSE", message=f"Upstream returned invalid JSON: {e}", http_status=502)
        try:
            return CompletionResponse.model_validate(data)
        except SchemaError as e:
            # 结构不符时按“没有任何回复”处理，由调用方给出固定回复
            logger.warning("Unexpected completion shape", extra={"extra": {"error": str(e)}})
            return CompletionResponse()

    # ---- 流式 ----

    async def stream(self, payload: ChatPayload) -> AsyncIterator[bytes]:
        self._require_api_key()
        # 生成长度未知，流式调用只限制连接时间，不限制总时长
        timeout = httpx.Timeout(None, connect=self._settings.http_timeout)
        try:
            async with httpx.AsyncClient(timeout=timeout, trust_env=False) as client:
                async with client.stream(
                    "POST",
                    self._url(),
                    json=payload.model_dump(),
                    headers=self._headers(stream=True),
                ) as resp:
                    if not 200 <= resp.status_code < 300:
                        body = await resp.aread()
                        self._check_status(resp.status_code, body.decode("utf-8", errors="replace"))
                    async with aclosing(self._iter_bytes(resp)) as chunks:
                        async for chunk in chunks:
                            yield chunk
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=502)

    # ---- 辅助方法 ----

    async def _iter_bytes(self, resp) -> AsyncIterator[bytes]:
        idle: Optional[float] = getattr(self._settings, "stream_idle_timeout", None)
        if not idle:
            async for chunk in resp.aiter_bytes():
                yield chunk
            return
        iterator = resp.aiter_bytes().__aiter__()
        while True:
            try:
                chunk = await asyncio.wait_for(iterator.__anext__(), timeout=idle)
            except StopAsyncIteration:
                return
            except asyncio.TimeoutError:
                raise NetworkError(
                    code="IDLE_TIMEOUT",
                    message=f"No data from upstream for {idle}s",
                    http_status=504,
                )
            yield chunk

    def _require_api_key(self) -> None:
        if not getattr(self._settings, "openrouter_api_key", None):
            raise ValidationError(code="MISSING_API_KEY", message="OPENROUTER_API_KEY not set", http_status=500)

    def _url(self) -> str:
        return f"{self._settings.openrouter_base_url.rstrip('/')}/chat/completions"

    def _headers(self, stream: bool) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._settings.openrouter_api_key}",
            "Content-Type": "application/json",
        }
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    @staticmethod
    def _check_status(status_code: int, body: str) -> None:
        if status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="OpenRouter rate limit", http_status=429)
        if not 200 <= status_code < 300:
            raise ApiError(code="API_ERROR", message=body, http_status=502, upstream_status=status_code)
