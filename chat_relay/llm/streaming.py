"""
Stream relay

Decodes the provider's chunked event stream and re-emits it as our own SSE
stream. Network reads do not line up with frames: a read may hold half a
line, several lines, or end in the middle of a multi-byte character, so the
decoder keeps the unterminated tail in ``carry`` until the rest arrives.

Upstream frame:    data: {"choices":[{"delta":{"content":"Hel"}}]}
Downstream event:  data: {"token": "Hel"}
Terminal line:     data: [DONE]
"""
import codecs
import json
from typing import Iterable, Iterator, List, Optional

from chat_relay.core.logging import get_logger
from chat_relay.models.response import TokenEvent

logger = get_logger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class FrameDecoder:
    """Incremental decoder turning raw upstream bytes into token strings."""

    def __init__(self, encoding: str = "utf-8"):
        self.carry = ""
        self.done = False
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    def feed(self, chunk: bytes) -> List[str]:
        """
        Consume one read of raw bytes.

        Args:
            chunk: Bytes exactly as they came off the wire

        Returns:
            Tokens completed by this read, in arrival order. Once the terminal
            sentinel has been seen this always returns an empty list.
        """
        if self.done or not chunk:
            return []

        self.carry += self._decoder.decode(chunk)
        lines = self.carry.split("\n")
        self.carry = lines.pop()

        tokens = []
        for line in lines:
            if not line.startswith(DATA_PREFIX):
                # keep-alives, comments, event names
                continue
            payload = line[len(DATA_PREFIX):].strip()
            if payload == DONE_SENTINEL:
                self.done = True
                self.carry = ""
                break
            token = extract_token(payload)
            if token:
                tokens.append(token)
        return tokens

    def close(self):
        """Drop whatever partial line is left; the stream has ended."""
        if self.carry:
            logger.debug(f"Discarding {len(self.carry)} chars of unterminated stream data")
        self.carry = ""


def extract_token(payload: str) -> Optional[str]:
    """Pull choices[0].delta.content out of a frame payload; None if absent or malformed."""
    try:
        frame = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug(f"Skipping malformed stream frame: {payload[:80]}")
        return None
    try:
        content = frame["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    return content if isinstance(content, str) else None


def format_token_event(token: str) -> str:
    """Serialize one token as an SSE event"""
    return f"{DATA_PREFIX}{json.dumps(TokenEvent(token=token).model_dump(), ensure_ascii=False)}\n\n"


def format_done_event() -> str:
    return f"{DATA_PREFIX}{DONE_SENTINEL}\n\n"


def relay_tokens(chunks: Iterable[bytes]) -> Iterator[Optional[str]]:
    """
    Yield tokens from an iterable of raw byte chunks, then ``None`` once for
    the terminal event.

    Reading stops as soon as the sentinel is seen. A stream that simply ends
    is a normal completion and still ends with ``None``. Errors raised by the
    underlying iterator propagate, and no terminal ``None`` is produced.
    """
    decoder = FrameDecoder()
    try:
        for chunk in chunks:
            for token in decoder.feed(chunk):
                yield token
            if decoder.done:
                break
        yield None
    finally:
        decoder.close()


def relay_stream(chunks: Iterable[bytes]) -> Iterator[str]:
    """Yield downstream SSE events for an upstream byte stream."""
    for token in relay_tokens(chunks):
        if token is None:
            yield format_done_event()
        else:
            yield format_token_event(token)
