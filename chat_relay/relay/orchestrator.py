"""转发编排模块。

一次 relay 调用的流程：
1. 把用户消息追加到会话历史；
2. 用历史快照构造上游请求（stream=true）；
3. 后台 producer 任务读取上游字节、驱动 StreamParser，把增量放进有界通道；
4. 前台循环按顺序取出增量，逐条写入历史并推送给客户端；
5. 解析完成后推送 "done" 事件并正常关闭；任何失败都以错误关闭推送通道。

同一 session_id 的并发 relay 不做编排层协调，只依赖存储自身的锁保证数据不损坏，
两轮对话的消息可能交错写入历史。
"""

import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import uuid4

from chat_relay.config.settings import settings
from chat_relay.domain.exceptions import ValidationError
from chat_relay.domain.models import (
    CHAT_EVENT,
    DONE_EVENT,
    NO_RESPONSE_TEXT,
    ChatPayload,
    Message,
    RelayEvent,
    RequestContext,
    StreamChunk,
)
from chat_relay.domain.session import SessionStore
from chat_relay.infrastructure.logging.logger import logger
from chat_relay.providers.base import UpstreamClient
from chat_relay.relay.emitter import RelayEmitter
from chat_relay.relay.parser import StreamParser, parse_stream

_END = object()


@dataclass
class _Failure:
    error: BaseException


@dataclass
class RelayResult:
    """一次 relay 的结果摘要。error 非空表示以失败结束。"""

    session_id: str
    model: Optional[str]
    chunk_count: int = 0
    sentinel_seen: bool = False
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RelayOrchestrator:
    def __init__(
        self,
        store: SessionStore,
        client: UpstreamClient,
        default_model: Optional[str] = None,
        queue_size: Optional[int] = None,
    ):
        self._store = store
        self._client = client
        self._default_model = default_model or settings.default_model
        self._queue_size = queue_size or settings.relay_queue_size

    async def relay(self, ctx: RequestContext, emitter: RelayEmitter) -> RelayResult:
        """执行一次流式转发。

        失败不会向上抛出，而是以 complete_with_error 关闭 emitter 并记录在返回值里；
        所在任务被取消（客户端断开）时会取消上游读取并重新抛出 CancelledError。
        """
        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "session_id": ctx.session_id,
        }
        result = RelayResult(session_id=ctx.session_id, model=None)
        try:
            self.validate(ctx)
            result.model = ctx.resolve_model(self._default_model)
            log_ctx["model"] = result.model

            payload = self._prepare_turn(ctx, result.model, stream=True, log_ctx=log_ctx)
            parser = StreamParser()
            channel: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
            producer = asyncio.create_task(self._produce(payload, parser, channel))
            try:
                while True:
                    item = await channel.get()
                    if item is _END:
                        break
                    if isinstance(item, _Failure):
                        raise item.error
                    await self._forward(ctx.session_id, item, emitter)
                    result.chunk_count += 1
            finally:
                if not producer.done():
                    producer.cancel()
                await asyncio.gather(producer, return_exceptions=True)
            result.sentinel_seen = parser.sentinel_seen

            await emitter.send(RelayEvent(DONE_EVENT, ""))
            await emitter.complete()
        except asyncio.CancelledError:
            self._log(
                logging.INFO,
                "Relay cancelled by client",
                log_ctx,
                chunks=result.chunk_count,
                elapsed_seconds=round(time.time() - start_time, 2),
            )
            raise
        except Exception as exc:
            result.error = exc
            self._log(
                logging.ERROR,
                "Relay failed",
                log_ctx,
                error=str(exc),
                error_type=type(exc).__name__,
                chunks=result.chunk_count,
            )
            await emitter.complete_with_error(exc)
            return result

        self._log(
            logging.INFO,
            "Completed relay",
            log_ctx,
            chunks=result.chunk_count,
            sentinel_seen=result.sentinel_seen,
            elapsed_seconds=round(time.time() - start_time, 2),
        )
        return result

    async def chat(self, ctx: RequestContext) -> str:
        """非流式对话（带历史）。回复作为一条完整的 assistant 消息写入历史。"""
        self.validate(ctx)
        model = ctx.resolve_model(self._default_model)
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "session_id": ctx.session_id,
            "model": model,
        }
        payload = self._prepare_turn(ctx, model, stream=False, log_ctx=log_ctx)
        response = await self._client.complete(payload)
        reply = response.reply_text()
        if reply is None:
            self._log(logging.WARNING, "Upstream returned no content", log_ctx)
            reply = NO_RESPONSE_TEXT
        self._store.append(ctx.session_id, "assistant", reply)
        self._log(logging.INFO, "Stored assistant reply", log_ctx, reply_length=len(reply))
        return reply

    async def ask(self, message: str, model: Optional[str] = None) -> str:
        """单轮非流式提问，不读写任何会话历史。"""
        if not message or not message.strip():
            raise ValidationError(code="EMPTY_MESSAGE", message="message must not be blank")
        chosen = RequestContext(session_id="", message=message, model=model).resolve_model(self._default_model)
        payload = ChatPayload.from_history(chosen, [Message(role="user", content=message)], stream=False)
        response = await self._client.complete(payload)
        reply = response.reply_text()
        return NO_RESPONSE_TEXT if reply is None else reply

    def history(self, session_id: str) -> List[Message]:
        return self._store.snapshot(session_id)

    def clear(self, session_id: str) -> None:
        self._store.clear(session_id)
        self._log(logging.INFO, "Cleared session", {"session_id": session_id})

    # ---- 辅助方法 ----

    def _prepare_turn(self, ctx: RequestContext, model: str, stream: bool, log_ctx: Dict[str, Any]) -> ChatPayload:
        self._store.append(ctx.session_id, "user", ctx.message)
        history = self._store.snapshot(ctx.session_id)
        self._log(
            logging.INFO,
            "Calling upstream (stream)" if stream else "Calling upstream",
            log_ctx,
            provider=self._client.name,
            message_count=len(history),
        )
        return ChatPayload.from_history(model, history, stream=stream)

    async def _produce(self, payload: ChatPayload, parser: StreamParser, channel: asyncio.Queue) -> None:
        try:
            async with aclosing(self._client.stream(payload)) as source:
                async with aclosing(parse_stream(source, parser)) as chunks:
                    async for chunk in chunks:
                        await channel.put(chunk)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await channel.put(_Failure(exc))
            return
        await channel.put(_END)

    async def _forward(self, session_id: str, chunk: StreamChunk, emitter: RelayEmitter) -> None:
        # 每个增量单独存为一条 assistant 消息，不合并
        self._store.append(session_id, "assistant", chunk.text)
        await emitter.send(RelayEvent(CHAT_EVENT, chunk.text))

    @staticmethod
    def validate(ctx: RequestContext) -> None:
        if not ctx.session_id or not ctx.session_id.strip():
            raise ValidationError(code="MISSING_SESSION_ID", message="sessionId is required")
        if not ctx.message or not ctx.message.strip():
            raise ValidationError(code="EMPTY_MESSAGE", message="message must not be blank")

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
