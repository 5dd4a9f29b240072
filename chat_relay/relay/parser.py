"""上游流式响应解析器。

上游返回以换行分隔的文本行，每行可能带一个或多个重复的 "data:" 前缀
（经过代理二次包装时会出现 "data:data: ..."），以单独一行 "[DONE]" 结束。

StreamParser 是一个增量状态机：
    ACCUMULATING --"[DONE]" 或输入结束--> DONE
    ACCUMULATING --读取失败--> FAILED
未以换行结尾的剩余字节会保留到下一次 feed，因此一行被拆在两个字节块里也能正确还原。
"""

from enum import Enum
from typing import AsyncIterator, List, Optional

from chat_relay.domain.exceptions import BusinessError, StreamError
from chat_relay.domain.models import StreamChunk

FRAME_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"
# 单行上限，上游一直不换行时不再无限缓存
MAX_LINE_BYTES = 1024 * 1024


class ParserState(str, Enum):
    ACCUMULATING = "accumulating"
    DONE = "done"
    FAILED = "failed"


class StreamParser:
    def __init__(self, max_line_bytes: int = MAX_LINE_BYTES) -> None:
        self.max_line_bytes = max_line_bytes
        self.state = ParserState.ACCUMULATING
        self.sentinel_seen = False
        self.error: Optional[BaseException] = None
        self._carry = b""

    def feed(self, data: bytes) -> List[StreamChunk]:
        """处理一个字节块，返回其中所有完整行产生的增量。"""
        if self.state is not ParserState.ACCUMULATING:
            return []
        lines = (self._carry + data).split(b"\n")
        self._carry = lines.pop()
        chunks: List[StreamChunk] = []
        for raw in lines:
            chunk = self._process_line(raw)
            if self.state is ParserState.DONE:
                self._carry = b""
                break
            if chunk is not None:
                chunks.append(chunk)
        if self.state is ParserState.ACCUMULATING and len(self._carry) > self.max_line_bytes:
            error = StreamError(ValueError(f"line exceeds {self.max_line_bytes} bytes without a newline"))
            self.fail(error)
            raise error
        return chunks

    def finish(self) -> List[StreamChunk]:
        """输入正常结束：处理最后一个未换行的行，然后进入 DONE。"""
        if self.state is not ParserState.ACCUMULATING:
            return []
        remainder, self._carry = self._carry, b""
        chunk = self._process_line(remainder) if remainder else None
        self.state = ParserState.DONE
        return [chunk] if chunk is not None else []

    def fail(self, error: BaseException) -> None:
        """读取失败：丢弃尚未成行的字节，进入 FAILED。"""
        if self.state is ParserState.ACCUMULATING:
            self.state = ParserState.FAILED
            self.error = error
        self._carry = b""

    def _process_line(self, raw: bytes) -> Optional[StreamChunk]:
        line = raw.decode("utf-8", errors="replace").lstrip()
        while line.startswith(FRAME_PREFIX):
            line = line[len(FRAME_PREFIX):]
        line = line.strip()
        if not line:
            return None
        if line == DONE_SENTINEL:
            self.state = ParserState.DONE
            self.sentinel_seen = True
            return None
        return StreamChunk(text=line)


async def parse_stream(
    source: AsyncIterator[bytes],
    parser: Optional[StreamParser] = None,
) -> AsyncIterator[StreamChunk]:
    """在异步字节流上驱动 StreamParser，按到达顺序产出 StreamChunk。

    读到 "[DONE]" 后立即停止读取；传输层异常会让解析器进入 FAILED，
    BusinessError 原样抛出，其余异常包装为 StreamError。
    """
    parser = parser or StreamParser()
    try:
        async for data in source:
            for chunk in parser.feed(data):
                yield chunk
            if parser.state is ParserState.DONE:
                return
    except BusinessError as exc:
        parser.fail(exc)
        raise
    except Exception as exc:
        parser.fail(exc)
        raise StreamError(exc)
    for chunk in parser.finish():
        yield chunk
