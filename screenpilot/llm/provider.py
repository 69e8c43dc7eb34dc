"""
Model transports.

Both providers take the same list of Messages and return the raw reply text:

* DirectLLMProvider calls an OpenAI-compatible endpoint with JSON mode on,
  rotating through the configured API keys.
* ProxyLLMProvider posts the conversation to a secured intermediary that
  holds the keys itself.
"""
import asyncio
import logging
import threading
from typing import Dict, List, Optional

import httpx
import openai
from openai import OpenAI

from ..config import AgentSettings
from ..errors import ConfigurationError, ContentBlockedError, TransportError
from ..interfaces import ILLMProvider
from ..memory.messages import Message, MessageRole

logger = logging.getLogger("agent.llm")


def mask_key(key: str) -> str:
    return f"...{key[-4:]}" if key else "<empty>"


class ApiKeyRotator:
    """Thread-safe round-robin over a fixed list of API keys."""

    def __init__(self, keys: List[str]):
        self._keys = [k.strip() for k in keys if k and k.strip()]
        self._index = 0
        self._lock = threading.Lock()

    @property
    def has_keys(self) -> bool:
        return bool(self._keys)

    def next_key(self) -> str:
        if not self._keys:
            raise ConfigurationError(
                "No API key configured. Set SCREENPILOT_API_KEYS (comma-separated for several keys)."
            )
        with self._lock:
            key = self._keys[self._index % len(self._keys)]
            self._index += 1
        return key


def to_chat_messages(messages: List[Message]) -> List[Dict[str, str]]:
    """
    Maps conversation messages onto chat-completion roles. A leading MODEL
    message carries the system prompt and is sent as ``system``.
    """
    chat = []
    for i, message in enumerate(messages):
        if message.role is MessageRole.MODEL:
            role = "system" if i == 0 else "assistant"
        else:
            role = "user"
        chat.append({"role": role, "content": message.text})
    return chat


class DirectLLMProvider(ILLMProvider):
    """Calls the model directly, one cached client per API key."""

    def __init__(self, settings: AgentSettings, rotator: Optional[ApiKeyRotator] = None):
        self.settings = settings
        self.rotator = rotator or ApiKeyRotator(settings.api_keys)
        self._clients: Dict[str, OpenAI] = {}
        self._clients_lock = threading.Lock()

    def _client_for(self, api_key: str) -> OpenAI:
        with self._clients_lock:
            client = self._clients.get(api_key)
            if client is None:
                logger.debug(f"Creating client for key ending in {mask_key(api_key)}")
                http_client = httpx.Client(
                    timeout=httpx.Timeout(self.settings.llm_timeout, connect=min(30.0, self.settings.llm_timeout))
                )
                client = OpenAI(
                    api_key=api_key,
                    base_url=self.settings.base_url,
                    http_client=http_client,
                    max_retries=0,
                )
                self._clients[api_key] = client
            return client

    async def generate(self, messages: List[Message]) -> str:
        # the SDK call blocks, keep it off the event loop
        return await asyncio.to_thread(self._generate_sync, messages)

    def _generate_sync(self, messages: List[Message]) -> str:
        client = self._client_for(self.rotator.next_key())
        try:
            response = client.chat.completions.create(
                model=self.settings.model_name,
                messages=to_chat_messages(messages),
                temperature=self.settings.temperature,
                response_format={"type": "json_object"},
            )
        except openai.APIStatusError as e:
            raise TransportError(f"Model API returned {e.status_code}: {e.message}", status_code=e.status_code) from e
        except openai.APIError as e:
            raise TransportError(f"Model API call failed: {e}") from e

        if not response.choices:
            raise ContentBlockedError("NO_CANDIDATES")
        choice = response.choices[0]
        content = choice.message.content if choice.message else None
        if choice.finish_reason == "content_filter" or not content or not content.strip():
            raise ContentBlockedError(str(choice.finish_reason or "UNKNOWN").upper())
        logger.debug(f"Received response from model ({len(content)} chars)")
        return content


class ProxyLLMProvider(ILLMProvider):
    """Posts ``{"modelName", "messages"}`` to the intermediary with an X-API-Key header."""

    def __init__(self, settings: AgentSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not settings.has_proxy:
            raise ConfigurationError("Proxy URL and proxy key must both be set to use the proxy transport.")
        self.settings = settings
        self.transport = transport

    async def generate(self, messages: List[Message]) -> str:
        payload = {
            "modelName": self.settings.model_name,
            "messages": [m.to_wire() for m in messages],
        }
        headers = {"Content-Type": "application/json", "X-API-Key": self.settings.proxy_key}
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.settings.llm_timeout),
                                         transport=self.transport) as client:
                response = await client.post(self.settings.proxy_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"Proxy API call failed: {type(e).__name__}: {e}") from e

        body = response.text
        if not response.is_success or not body.strip():
            raise TransportError(
                f"Proxy API call failed with code: {response.status_code}, body: {body[:200]}",
                status_code=response.status_code,
            )
        logger.debug("Successfully received response from proxy.")
        return body
