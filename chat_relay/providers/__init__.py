"""上游 LLM Provider 集成层。

- base: UpstreamClient 协议。
- openrouter_client: OpenRouter（OpenAI 兼容）HTTP 实现。
"""

from chat_relay.config.settings import settings
from chat_relay.providers.base import UpstreamClient
from chat_relay.providers.openrouter_client import OpenRouterClient


def create_client(cfg=None) -> UpstreamClient:
    """根据配置创建上游客户端实例。"""

    return OpenRouterClient(cfg or settings)


__all__ = ["UpstreamClient", "OpenRouterClient", "create_client"]
