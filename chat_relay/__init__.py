"""Chat Relay 顶层包。

在客户端与上游 LLM chat/completions 接口之间转发对话：
维护每个会话的消息历史，把上游的流式增量实时推送给客户端。
"""

from chat_relay.domain.models import Message, RequestContext, StreamChunk
from chat_relay.relay.orchestrator import RelayOrchestrator

__all__ = ["Message", "RequestContext", "StreamChunk", "RelayOrchestrator"]
