import requests
import json
from typing import Optional, Dict, Any, Sequence, Union

from chat_relay.core.config import settings
from chat_relay.core.errors import ProviderError, RateLimitError
from chat_relay.core.logging import get_logger
from chat_relay.models.request import ChatMessage

logger = get_logger(__name__)


class OpenAIChatClient:
    """Client for an OpenAI-compatible chat completions endpoint"""

    def __init__(
        self,
        api_key: str,
        base_url: str = settings.OPENAI_BASE_URL,
        model: str = settings.LLM_MODEL_NAME,
        max_tokens: int = settings.LLM_MAX_TOKENS,
        temperature: float = settings.LLM_TEMPERATURE,
        timeout: float = settings.LLM_TIMEOUT
    ):
        """
        Initialize the chat completions client

        Args:
            api_key: Provider API key (sent as a Bearer token)
            base_url: Provider API base URL
            model: Model name (e.g., 'gpt-4o-mini')
            max_tokens: Cap on generated tokens
            temperature: Sampling temperature (0.0 to 2.0)
            timeout: Connect/read timeout in seconds
        """
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

        logger.info(f"Initialized chat completions client with model: {self.model}")

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _build_payload(self, messages: Sequence[ChatMessage], stream: bool) -> Dict[str, Any]:
        """Build request payload for the chat completions endpoint"""
        return {
            "model": self.model,
            "messages": [m.to_payload() for m in messages],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": stream,
        }

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _raise_for_status(self, response: requests.Response):
        """Turn a non-2xx provider answer into ProviderError / RateLimitError"""
        if response.ok:
            return
        try:
            body = response.text
        finally:
            response.close()
        logger.error(f"Provider error: {response.status_code} {body}")
        if response.status_code == 429:
            raise RateLimitError("Provider rate limit reached", status_code=429, body=body)
        raise ProviderError(
            f"Provider returned HTTP {response.status_code}",
            status_code=response.status_code,
            body=body
        )

    def complete(
        self,
        messages: Sequence[ChatMessage],
        stream: bool = False
    ) -> Union[str, requests.Response]:
        """
        Send one chat completion request. Never retries.

        Args:
            messages: Assembled message list
            stream: Ask for a chunked event stream instead of one JSON body

        Returns:
            Reply text (buffered), or the open response whose body is the
            event stream (streaming). The caller must close a streaming response.

        Raises:
            RateLimitError: Provider answered 429
            ProviderError: Any other non-2xx status, network failure or malformed reply
        """
        payload = self._build_payload(messages, stream)

        logger.debug(f"Requesting completion ({len(payload['messages'])} messages, stream={stream})")
        try:
            response = requests.post(
                self.endpoint,
                headers=self._headers(),
                json=payload,
                timeout=self.timeout,
                stream=stream
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error calling provider: {e}")
            raise ProviderError(f"Provider request failed: {e}") from e

        self._raise_for_status(response)

        if stream:
            return response

        return self._parse_reply(response)

    def _parse_reply(self, response: requests.Response) -> str:
        """Extract choices[0].message.content from a buffered reply"""
        try:
            data = response.json()
            text = data["choices"][0]["message"]["content"]
        except (json.JSONDecodeError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Error parsing provider response: {e}")
            raise ProviderError("Malformed provider response") from e
        if not isinstance(text, str):
            raise ProviderError("Provider response has no text content")

        logger.debug(f"Generated response ({len(text)} chars)")
        return text


# Default client instance
llm_client: Optional[OpenAIChatClient] = None


def get_llm_client() -> Optional[OpenAIChatClient]:
    """Get or create the completion client; None when no API key is configured"""
    global llm_client
    if llm_client is None and settings.OPENAI_API_KEY:
        llm_client = OpenAIChatClient(api_key=settings.OPENAI_API_KEY)
    return llm_client
