"""
Chat Service Module

Business logic layer for chat operations.
Handles:
- Prompt assembly from the caller's articles and history
- Buffered and streamed completions
- Friendly fallback replies when the provider is missing or failing
"""

from typing import Iterator, Optional, Union
import time

import requests

from chat_relay.core.config import settings
from chat_relay.core.errors import ProviderError, RateLimitError
from chat_relay.core.logging import get_logger
from chat_relay.llm.client import OpenAIChatClient, get_llm_client
from chat_relay.llm.streaming import relay_stream
from chat_relay.models.request import ChatRequest
from chat_relay.models.response import ChatReply
from chat_relay.rag.prompt import PromptBuilder, get_prompt_builder

logger = get_logger(__name__)


def not_configured_message() -> str:
    return (
        f"{settings.ASSISTANT_NAME} isn't configured for this environment. "
        f"Please browse the articles above or email {settings.SUPPORT_EMAIL}."
    )


def apology_message() -> str:
    return (
        "Sorry, I had trouble answering that. "
        f"Please try again or contact {settings.SUPPORT_EMAIL}."
    )


class RelayStream:
    """
    An open upstream stream being relayed as SSE.

    Iterating yields SSE event strings. The upstream response is closed when
    iteration ends for any reason, and close() may also be called directly
    (e.g. when the downstream client goes away).
    """

    def __init__(self, response: requests.Response):
        self.response = response
        self.closed = False

    def __iter__(self) -> Iterator[str]:
        start_time = time.time()
        events = 0
        try:
            for event in relay_stream(self.response.iter_content(chunk_size=None)):
                events += 1
                yield event
            logger.info(f"Relayed {events} stream events in {time.time() - start_time:.2f}s")
        except requests.exceptions.RequestException as e:
            # Transport broke mid-stream; end without a terminal event
            logger.error(f"Upstream stream interrupted after {events} events: {e}")
        finally:
            self.close()

    def close(self):
        if not self.closed:
            self.closed = True
            self.response.close()


class ChatService:
    """
    Service for handling chat operations.
    """

    def __init__(
        self,
        llm_client: Optional[OpenAIChatClient] = None,
        prompt_builder: Optional[PromptBuilder] = None
    ):
        """
        Initialize chat service.

        Args:
            llm_client: Completion client; None runs in "not configured" mode
            prompt_builder: Prompt builder (defaults to the shared one)
        """
        self.llm_client = llm_client
        self.prompt_builder = prompt_builder or get_prompt_builder()

        logger.info(f"Initialized ChatService (configured={self.is_configured})")

    @property
    def is_configured(self) -> bool:
        return self.llm_client is not None

    def generate_response(self, request: ChatRequest) -> ChatReply:
        """
        Generate a buffered reply.

        Provider failures never escape: they are logged and answered with an
        apology that points at the support channel.
        """
        if not self.is_configured:
            return ChatReply(reply=not_configured_message())

        messages = self.prompt_builder.assemble(request.context, request.question, request.history)
        start_time = time.time()
        try:
            text = self.llm_client.complete(messages, stream=False)
        except RateLimitError as e:
            logger.warning(f"Provider rate limited the request: {e}")
            return ChatReply(reply=apology_message())
        except ProviderError as e:
            logger.error(f"Chat API error: {e}")
            return ChatReply(reply=apology_message())

        logger.info(f"Generated response in {time.time() - start_time:.2f}s")
        return ChatReply(reply=text)

    def stream_response(self, request: ChatRequest) -> Union[ChatReply, RelayStream]:
        """
        Open a streamed reply.

        Returns:
            RelayStream when the provider accepted the request, otherwise a
            ChatReply (not configured, or connection failed) to send as JSON
        """
        if not self.is_configured:
            return ChatReply(reply=not_configured_message())

        messages = self.prompt_builder.assemble(request.context, request.question, request.history)
        try:
            response = self.llm_client.complete(messages, stream=True)
        except RateLimitError as e:
            logger.warning(f"Provider rate limited the request: {e}")
            return ChatReply(reply=apology_message())
        except ProviderError as e:
            logger.error(f"Chat API error: {e}")
            return ChatReply(reply=apology_message())

        return RelayStream(response)


# Global service instance
_chat_service = None


def get_chat_service() -> ChatService:
    """Get or create chat service instance"""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService(llm_client=get_llm_client())
    return _chat_service
