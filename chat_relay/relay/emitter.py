"""面向客户端的推送通道。

RelayOrchestrator 只依赖 RelayEmitter 协议：
- send(event): 推送一个命名事件，客户端处理不过来时挂起等待。
- complete(): 正常结束。
- complete_with_error(exc): 以失败结束，之后不再发送任何事件。

QueueEmitter 用有界 asyncio.Queue 实现该协议，由 HTTP 层通过 events() 读取。
"""

import asyncio
from typing import AsyncIterator, Optional, Protocol

from chat_relay.domain.models import RelayEvent

_CLOSED = object()


class RelayEmitter(Protocol):
    async def send(self, event: RelayEvent) -> None:
        ...

    async def complete(self) -> None:
        ...

    async def complete_with_error(self, error: BaseException) -> None:
        ...


class EmitterClosedError(RuntimeError):
    pass


class QueueEmitter:
    def __init__(self, maxsize: int = 16):
        self._queue: "asyncio.Queue[object]" = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.error: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: RelayEvent) -> None:
        if self._closed:
            raise EmitterClosedError(f"emitter already closed, cannot send {event.name!r}")
        await self._queue.put(event)

    async def complete(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_CLOSED)

    async def complete_with_error(self, error: BaseException) -> None:
        if self._closed:
            return
        self._closed = True
        self.error = error
        await self._queue.put(_CLOSED)

    async def events(self) -> AsyncIterator[RelayEvent]:
        """按发送顺序读出事件，直到关闭；以失败关闭时在读完已发送事件后抛出该错误。"""
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                if self.error is not None:
                    raise self.error
                return
            yield item
