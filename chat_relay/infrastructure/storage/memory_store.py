"""进程内会话历史存储。

每个会话一把锁，另有一把注册表锁保护 session_id -> 历史 的映射。
临界区内不做任何 await，因此既可在线程中调用，也可在事件循环里直接调用。

注意：没有 TTL 与淘汰策略，历史随进程生命周期无限增长；
对外暴露时需要由上层限制会话数量或定期 clear。
"""

import threading
from typing import Dict, List

from chat_relay.domain.models import Message, Role
from chat_relay.domain.session import SessionStore


class _SessionHistory:
    __slots__ = ("lock", "messages")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.messages: List[Message] = []


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._sessions: Dict[str, _SessionHistory] = {}

    def append(self, session_id: str, role: Role, content: str) -> None:
        message = Message(role=role, content=content)
        while True:
            history = self._get_or_create(session_id)
            with history.lock:
                # clear 可能在拿到 history 与加锁之间把它摘掉，此时重新取
                with self._registry_lock:
                    current = self._sessions.get(session_id)
                if current is history:
                    history.messages.append(message)
                    return

    def snapshot(self, session_id: str) -> List[Message]:
        with self._registry_lock:
            history = self._sessions.get(session_id)
        if history is None:
            return []
        with history.lock:
            return list(history.messages)

    def clear(self, session_id: str) -> None:
        with self._registry_lock:
            history = self._sessions.pop(session_id, None)
        if history is not None:
            with history.lock:
                history.messages.clear()

    def session_ids(self) -> List[str]:
        with self._registry_lock:
            return list(self._sessions)

    def _get_or_create(self, session_id: str) -> _SessionHistory:
        with self._registry_lock:
            history = self._sessions.get(session_id)
            if history is None:
                history = _SessionHistory()
                self._sessions[session_id] = history
            return history
