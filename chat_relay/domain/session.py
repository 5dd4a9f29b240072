from typing import List, Protocol

from .models import Message, Role


class SessionStore(Protocol):
    """会话历史存储。

    实现者独占所有 Message 数据：snapshot 返回的是独立副本，
    调用方修改副本不会影响已存储的历史。未知 session_id 一律视为空会话。
    """

    def append(self, session_id: str, role: Role, content: str) -> None:
        ...

    def snapshot(self, session_id: str) -> List[Message]:
        ...

    def clear(self, session_id: str) -> None:
        ...
