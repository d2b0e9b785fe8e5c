"""
Streaming chat-completion handler.

Chunks delivered by the HTTP transport are appended to a fixed-capacity byte
buffer, split into complete lines, decoded as SSE `data:` events, and the delta
content of each event is written to the terminal as soon as it is decoded.

    transport -> StreamContext.append -> StreamContext.drain
              -> decode_event -> StreamPrinter.emit -> stdout

A line that reaches the buffer capacity before its newline aborts the stream.
Lines that are not chat-completion events ([DONE], keep-alives, garbage) are
dropped without error.
"""

import json
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import IO, Any, Dict, Iterator, Optional, Union

import requests

from config import APIConfig
from errors import BufferOverflow, TransportError
from utils import build_headers

logger = logging.getLogger(__name__)


# ============ Constants ============
class Constants:
    """Stream decoding constants"""
    STREAM_BUFFER_SIZE = 4096
    CHUNK_SIZE = 1024
    DATA_PREFIX = "data: "


class StreamState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StreamResult:
    """Outcome of a stream that ran to its end"""
    fragments: int = 0
    sink_errors: int = 0
    usage_unavailable: bool = False
    discarded_bytes: int = 0


# ============ Buffer ============
class StreamContext:
    """
    Per-request buffer state.

    After every append + drain the buffer holds at most one partial
    (newline-less) line, always shorter than the capacity.
    """

    def __init__(
        self, capacity: int = Constants.STREAM_BUFFER_SIZE, show_tokens: bool = False
    ):
        self.capacity = capacity
        self.show_tokens = show_tokens
        self.buffer = bytearray()

    @property
    def buffer_len(self) -> int:
        return len(self.buffer)

    def append(self, chunk: bytes) -> None:
        """
        Append a chunk to the buffer tail.

        Raises BufferOverflow, leaving the buffer untouched, if any line would
        reach the capacity before its terminating newline.
        """
        pending = len(self.buffer)
        for segment in chunk.split(b"\n"):
            if pending + len(segment) >= self.capacity:
                raise BufferOverflow(self.capacity, pending + len(segment))
            pending = 0
        self.buffer.extend(chunk)

    def drain(self) -> Iterator[bytes]:
        """Yield complete lines in arrival order, keeping the trailing partial line"""
        while True:
            end = self.buffer.find(b"\n")
            if end < 0:
                return
            line = bytes(self.buffer[:end])
            # Consume before yielding so an abandoned drain can be resumed
            del self.buffer[: end + 1]
            yield line


# ============ Decoding ============
def decode_event(line: Union[bytes, str]) -> Optional[str]:
    """
    Return choices[0].delta.content of an event line, or None.

    Never raises: undecodable or unexpected lines are discarded.
    """
    if isinstance(line, (bytes, bytearray)):
        try:
            line = bytes(line).decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Discarded line: invalid UTF-8")
            return None

    if line.startswith(Constants.DATA_PREFIX):
        line = line[len(Constants.DATA_PREFIX):]

    if not line.strip():
        return None

    try:
        event = json.loads(line)
    except (ValueError, RecursionError):
        logger.debug(f"Discarded non-JSON line: {line[:80]!r}")
        return None

    if not isinstance(event, dict):
        return None
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if not isinstance(content, str):
        return None
    return content


# ============ Output ============
class StreamPrinter:
    """Writes each fragment to the sink and flushes immediately"""

    def __init__(self, sink: Optional[IO[str]] = None):
        # None means "whatever sys.stdout is at write time"
        self.sink = sink

    def emit(self, fragment: str) -> bool:
        """Best-effort write; returns False instead of raising on sink errors"""
        sink = self.sink if self.sink is not None else sys.stdout
        try:
            sink.write(fragment)
            sink.flush()
        except (OSError, ValueError) as e:
            logger.warning(f"Output write failed: {e}")
            return False
        return True


# ============ HTTP Client ============
class StreamingClient:
    """Runs one streaming chat request at a time"""

    def __init__(
        self,
        config: APIConfig,
        printer: Optional[StreamPrinter] = None,
        capacity: int = Constants.STREAM_BUFFER_SIZE,
    ):
        self.config = config
        self.printer = printer or StreamPrinter()
        self.capacity = capacity
        self.state = StreamState.IDLE
        self.session = requests.Session()
        self.session.headers.update(build_headers(config.api_key, stream=True))

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.session.close()

    def run(self, body: Dict[str, Any], show_tokens: bool = False) -> StreamResult:
        """
        POST the body and print delta content until the stream ends.

        Raises BufferOverflow or TransportError; fragments printed before the
        failure stay printed.
        """
        ctx = StreamContext(self.capacity, show_tokens)
        result = StreamResult()
        self.state = StreamState.STREAMING
        logger.debug(f"POST {self.config.base_url} (stream)")

        try:
            with self.session.post(
                self.config.base_url,
                json=body,
                stream=True,
                timeout=self.config.timeout,
            ) as resp:
                if not resp.ok:
                    raise TransportError(
                        f"HTTP error {resp.status_code}: {resp.text or 'No response content'}"
                    )

                for chunk in resp.iter_content(chunk_size=Constants.CHUNK_SIZE):
                    if not chunk:
                        continue
                    ctx.append(chunk)
                    for line in ctx.drain():
                        fragment = decode_event(line)
                        if fragment is None:
                            continue
                        if self.printer.emit(fragment):
                            result.fragments += 1
                        else:
                            result.sink_errors += 1

        except (BufferOverflow, TransportError) as e:
            self.state = StreamState.FAILED
            logger.debug(f"Stream failed: {e}")
            raise
        except requests.exceptions.Timeout:
            self.state = StreamState.FAILED
            raise TransportError(f"Timeout after {self.config.timeout}s")
        except requests.exceptions.RequestException as e:
            self.state = StreamState.FAILED
            raise TransportError(f"Request failed: {e}")

        if ctx.buffer_len:
            result.discarded_bytes = ctx.buffer_len
            logger.debug(f"Stream ended with {ctx.buffer_len} bytes of unterminated data")

        # Usage totals are not delivered reliably before the stream ends
        if ctx.show_tokens:
            result.usage_unavailable = True

        self.state = StreamState.COMPLETED
        return result
