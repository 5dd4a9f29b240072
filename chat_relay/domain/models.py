"""统一的对话与结果数据模型。

- Message: 会话历史中的一条消息，创建后不可修改。
- StreamChunk: 流式生成中的一个文本增量。
- RequestContext: 一次转发调用的入参。
- ChatPayload / CompletionResponse: 上游 chat/completions 的请求体与响应体 schema。
  请求体通过 pydantic 序列化，响应体只解码一次，缺失字段以 None 表示。
"""

import re
from dataclasses import dataclass
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict

# 与 OpenAI 兼容接口的 role 字段对应
Role = Literal["system", "user", "assistant"]

# 非流式调用拿不到任何文本时返回的固定回复
NO_RESPONSE_TEXT = "no response produced"

CHAT_EVENT = "chat"
DONE_EVENT = "done"

_SSE_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class Message:
    """一条历史消息。内容变化只能追加新 Message，不能原地修改。"""

    role: Role
    content: str


@dataclass(frozen=True)
class StreamChunk:
    """流式返回的一段文本，不保证落在句子或 token 边界上。"""

    text: str
    terminal: bool = False


@dataclass(frozen=True)
class RequestContext:
    """一次转发调用的上下文。"""

    session_id: str
    message: str
    model: Optional[str] = None

    def resolve_model(self, default: str) -> str:
        """model 非空白时使用它，否则回落到默认模型。"""
        if self.model is not None and self.model.strip():
            return self.model
        return default


@dataclass(frozen=True)
class RelayEvent:
    """推送给客户端的一个命名事件。"""

    name: str
    data: str = ""

    def to_sse(self) -> str:
        # SSE 把 CRLF、CR、LF 都当作换行，多行内容拆成多条 data 行，客户端会用 "\n" 重新拼接
        lines = _SSE_LINE_BREAK.split(self.data) if self.data else [""]
        body = "".join(f"data: {line}\n" for line in lines)
        return f"event: {self.name}\n{body}\n"


# ---- 上游 schema ----


class PayloadMessage(BaseModel):
    role: Role
    content: str


class ChatPayload(BaseModel):
    """上游请求体：{model, messages, stream}。"""

    model: str
    messages: List[PayloadMessage]
    stream: bool = False

    @classmethod
    def from_history(cls, model: str, history: List[Message], stream: bool) -> "ChatPayload":
        return cls(
            model=model,
            messages=[PayloadMessage(role=m.role, content=m.content) for m in history],
            stream=stream,
        )


class ResponseMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Optional[str] = None
    content: Optional[str] = None


class ResponseChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[ResponseMessage] = None
    text: Optional[str] = None


class CompletionResponse(BaseModel):
    """非流式响应。只关心 choices[0].message.content 与 choices[0].text。"""

    model_config = ConfigDict(extra="ignore")

    choices: Optional[List[ResponseChoice]] = None

    def reply_text(self) -> Optional[str]:
        """优先取 message.content，缺失时回落到 text，都没有则返回 None。"""
        if not self.choices:
            return None
        first = self.choices[0]
        if first.message is not None and first.message.content is not None:
            return first.message.content
        return first.text
