"""对外服务模块。

提供简化的函数接口供 HTTP 层或其他上层应用调用。
"""

import asyncio
import json
from typing import Any, AsyncIterator, Dict, List, Optional

from chat_relay.config.settings import settings
from chat_relay.domain.exceptions import BusinessError
from chat_relay.domain.models import RelayEvent, RequestContext
from chat_relay.domain.session import SessionStore
from chat_relay.infrastructure.logging.logger import logger
from chat_relay.infrastructure.storage.memory_store import InMemorySessionStore
from chat_relay.providers import create_client
from chat_relay.relay.emitter import QueueEmitter
from chat_relay.relay.orchestrator import RelayOrchestrator

ERROR_EVENT = "error"

_store: Optional[SessionStore] = None
_orchestrator: Optional[RelayOrchestrator] = None


def get_default_orchestrator() -> RelayOrchestrator:
    """获取默认的 RelayOrchestrator 实例（单例）。"""
    global _store, _orchestrator
    if _store is None:
        _store = InMemorySessionStore()
    if _orchestrator is None:
        _orchestrator = RelayOrchestrator(
            store=_store,
            client=create_client(settings),
            default_model=settings.default_model,
            queue_size=settings.relay_queue_size,
        )
    return _orchestrator


async def stream_chat(ctx: RequestContext) -> AsyncIterator[str]:
    """以 SSE 文本帧的形式产出一次 relay 的全部事件。

    relay 在独立任务中运行；本生成器被关闭（客户端断开）时取消该任务，
    从而关闭上游连接。以失败结束时追加一个 "error" 事件，不发送 "done"。
    """
    orchestrator = get_default_orchestrator()
    emitter = QueueEmitter(maxsize=settings.relay_queue_size)
    task = asyncio.create_task(orchestrator.relay(ctx, emitter))
    try:
        async for event in emitter.events():
            yield event.to_sse()
    except Exception as exc:
        logger.error(f"Stream failed: {exc}", extra={"extra": {
            "session_id": ctx.session_id,
            "error": str(exc),
        }})
        yield RelayEvent(ERROR_EVENT, json.dumps(_error_body(exc), ensure_ascii=False)).to_sse()
    finally:
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)


async def chat(ctx: RequestContext) -> str:
    """非流式对话（带历史），返回完整回复。"""
    return await get_default_orchestrator().chat(ctx)


def history(session_id: str) -> List[Dict[str, Any]]:
    """获取会话的所有消息。"""
    return [{"role": m.role, "content": m.content} for m in get_default_orchestrator().history(session_id)]


def clear_session(session_id: str) -> None:
    get_default_orchestrator().clear(session_id)


def _error_body(exc: BaseException) -> Dict[str, Any]:
    if isinstance(exc, BusinessError):
        return {"code": exc.code, "message": exc.message}
    return {"code": "RELAY_FAILED", "message": str(exc)}
