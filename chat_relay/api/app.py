"""HTTP 接口层（FastAPI）。"""

from typing import Optional

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from chat_relay.api import service
from chat_relay.config.settings import settings
from chat_relay.domain.exceptions import BusinessError
from chat_relay.domain.models import RequestContext
from chat_relay.relay.orchestrator import RelayOrchestrator

app = FastAPI(title="Chat Relay")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)


class ChatBody(BaseModel):
    session_id: str = Field(alias="sessionId")
    message: str
    model: Optional[str] = None


@app.exception_handler(BusinessError)
async def business_error_handler(request: Request, exc: BusinessError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content={"code": exc.code, "message": exc.message})


@app.get("/api/chat/stream")
async def stream_chat(
    sessionId: str = Query(...),
    message: str = Query(...),
    model: Optional[str] = Query(None),
):
    ctx = RequestContext(session_id=sessionId, message=message, model=model)
    RelayOrchestrator.validate(ctx)
    return StreamingResponse(
        service.stream_chat(ctx),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.post("/api/chat")
async def chat(body: ChatBody):
    ctx = RequestContext(session_id=body.session_id, message=body.message, model=body.model)
    reply = await service.chat(ctx)
    return {"sessionId": body.session_id, "reply": reply}


@app.get("/api/chat/{session_id}/history")
async def chat_history(session_id: str):
    return {"sessionId": session_id, "messages": service.history(session_id)}


@app.delete("/api/chat/{session_id}")
async def clear_chat(session_id: str):
    service.clear_session(session_id)
    return {"sessionId": session_id, "cleared": True}


def run() -> None:
    uvicorn.run("chat_relay.api.app:app", host="127.0.0.1", port=8080)


if __name__ == "__main__":
    run()
