import os
import tempfile

# 测试期间日志写到临时目录，避免污染工作区
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="chat-relay-logs-"))

import asyncio

import pytest

from chat_relay.domain.models import CompletionResponse


class FakeUpstream:
    """可编排的上游客户端：按给定字节块产出流，可选在末尾抛错或永久挂起。"""

    name = "fake"

    def __init__(self, chunks=(), error=None, response=None, hang=False):
        self.chunks = list(chunks)
        self.error = error
        self.response = response if response is not None else {"choices": []}
        self.hang = hang
        self.payloads = []
        self.yielded = 0
        self.closed = False

    async def complete(self, payload):
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return CompletionResponse.model_validate(self.response)

    async def stream(self, payload):
        self.payloads.append(payload)
        try:
            for chunk in self.chunks:
                self.yielded += 1
                yield chunk
                await asyncio.sleep(0)
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.closed = True


class RecordingEmitter:
    def __init__(self):
        self.events = []
        self.completed = False
        self.error = None

    async def send(self, event):
        self.events.append(event)

    async def complete(self):
        self.completed = True

    async def complete_with_error(self, error):
        self.error = error


@pytest.fixture
def fake_upstream():
    return FakeUpstream


@pytest.fixture
def recording_emitter():
    return RecordingEmitter()
