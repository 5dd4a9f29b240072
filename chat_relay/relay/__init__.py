"""流式转发核心。

- parser: 把上游字节流解码为有序的文本增量。
- emitter: 面向客户端的推送通道。
- orchestrator: 串起会话历史、上游调用与推送。
"""

from chat_relay.relay.emitter import QueueEmitter, RelayEmitter
from chat_relay.relay.orchestrator import RelayOrchestrator, RelayResult
from chat_relay.relay.parser import ParserState, StreamParser, parse_stream

__all__ = [
    "ParserState",
    "StreamParser",
    "parse_stream",
    "RelayEmitter",
    "QueueEmitter",
    "RelayOrchestrator",
    "RelayResult",
]
