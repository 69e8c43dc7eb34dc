import logging
from typing import Any, Dict, List, Optional

from ..actions.schema import decode_actions
from ..config import AgentSettings
from ..domain import AgentOutput
from ..errors import ActionDecodingError, ContentBlockedError, LLMError
from ..interfaces import ILLMProvider
from ..memory.messages import Message
from ..utils import clean_json_response, with_async_retry
from .provider import ApiKeyRotator, DirectLLMProvider, ProxyLLMProvider

logger = logging.getLogger("agent.llm")


def _optional_text(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def parse_agent_output(data: Dict[str, Any]) -> AgentOutput:
    """Builds an AgentOutput from the reply object. Raises ActionDecodingError on a bad action list."""
    if "action" not in data:
        raise ActionDecodingError("Model output has no 'action' list")
    return AgentOutput(
        action=decode_actions(data["action"]),
        evaluation_previous_goal=_optional_text(data, "evaluation_previous_goal"),
        memory=_optional_text(data, "memory"),
        next_goal=_optional_text(data, "next_goal"),
        thinking=_optional_text(data, "thinking"),
    )


class LLMOrchestrator:
    """
    Turns the conversation into one AgentOutput.

    The secured intermediary is used when both its URL and key are configured,
    otherwise the model is called directly with API-key rotation. Every
    attempt that fails (transport error, blocked content, non-JSON reply) is
    retried with exponential backoff; when all attempts fail no decision is
    returned.
    """

    def __init__(self, settings: AgentSettings, direct: Optional[ILLMProvider] = None,
                 proxy: Optional[ILLMProvider] = None, rotator: Optional[ApiKeyRotator] = None):
        self.settings = settings
        self._direct = direct
        self._proxy = proxy
        self._rotator = rotator
        self.last_failure_reason: Optional[str] = None

    def select_provider(self) -> ILLMProvider:
        if self.settings.has_proxy:
            if self._proxy is None:
                self._proxy = ProxyLLMProvider(self.settings)
            logger.info("Proxy config found. Using secure intermediary.")
            return self._proxy
        if self._direct is None:
            self._direct = DirectLLMProvider(self.settings, self._rotator)
        logger.info("Proxy config not found. Using direct model call.")
        return self._direct

    async def generate_decision(self, messages: List[Message]) -> Optional[AgentOutput]:
        """
        Returns the decision for this step, or None when every attempt failed.

        Raises:
            ActionDecodingError: the reply was valid JSON but named an unknown
                action or carried a wrongly typed parameter.
        """
        provider = self.select_provider()
        self.last_failure_reason = None

        @with_async_retry(
            max_attempts=self.settings.max_retries,
            initial_delay=self.settings.retry_initial_delay,
            max_delay=self.settings.retry_max_delay,
            factor=self.settings.retry_factor,
        )
        async def attempt() -> Dict[str, Any]:
            try:
                raw = await provider.generate(messages)
            except ContentBlockedError as e:
                self.last_failure_reason = f"blocked: {e.reason}"
                logger.warning(f"Model response blocked. Reason: {e.reason}")
                raise
            except LLMError as e:
                self.last_failure_reason = f"transport: {e}"
                raise

            data = clean_json_response(raw)
            if data is None:
                self.last_failure_reason = "invalid_json"
                logger.warning(f"Model reply is not a JSON object: {raw[:200]}")
                raise LLMError("Model reply is not a JSON object")
            return data

        data = await attempt()
        if data is None:
            logger.error(f"No decision from model after {self.settings.max_retries} attempts "
                         f"({self.last_failure_reason or 'unknown failure'})")
            return None
        return parse_agent_output(data)
