"""Minimal demonstration of a streamed relay in the terminal."""

import asyncio

from chat_relay.api.service import get_default_orchestrator
from chat_relay.domain.models import CHAT_EVENT, RequestContext
from chat_relay.relay.emitter import QueueEmitter


async def main() -> None:
    question = "用三句话介绍一下你自己"
    emitter = QueueEmitter()
    task = asyncio.create_task(get_default_orchestrator().relay(RequestContext("demo", question), emitter))
    print("User:", question)
    async for event in emitter.events():
        if event.name == CHAT_EVENT:
            print("chunk:", event.data)
    await task


if __name__ == "__main__":
    asyncio.run(main())
