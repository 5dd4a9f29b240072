"""Provider 抽象接口。

RelayOrchestrator 不直接依赖 HTTP 客户端，而是依赖此协议：

- complete(payload): 一次非流式调用，返回解码后的 CompletionResponse。
- stream(payload): 流式调用，原样产出上游字节块，由 StreamParser 负责分行与解帧。

关闭 stream() 返回的异步生成器即释放上游连接。
"""

from typing import AsyncIterator, Protocol

from chat_relay.domain.models import ChatPayload, CompletionResponse


class UpstreamClient(Protocol):
    name: str

    async def complete(self, payload: ChatPayload) -> CompletionResponse:
        ...

    def stream(self, payload: ChatPayload) -> AsyncIterator[bytes]:
        ...
