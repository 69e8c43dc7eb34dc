import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from screenpilot.actions.schema import Back, TapElement
from screenpilot.config import AgentSettings
from screenpilot.errors import ActionDecodingError, ContentBlockedError, TransportError
from screenpilot.llm.orchestrator import LLMOrchestrator, parse_agent_output
from screenpilot.memory.messages import Message

VALID_REPLY = json.dumps({
    "thinking": "The search box is visible.",
    "evaluation_previous_goal": "Success",
    "memory": "Home screen open",
    "next_goal": "Tap search",
    "action": [{"tap_element": {"element_id": 1}}],
})

MESSAGES = [Message.model("system"), Message.user("state")]


def _orchestrator(provider, **settings):
    return LLMOrchestrator(AgentSettings(api_keys=["k1"], **settings), direct=provider)


def _provider(**kwargs):
    provider = MagicMock()
    provider.generate = AsyncMock(**kwargs)
    return provider


@pytest.mark.asyncio
async def test_valid_reply_becomes_agent_output():
    provider = _provider(return_value=VALID_REPLY)

    output = await _orchestrator(provider).generate_decision(MESSAGES)

    assert output.action == [TapElement(1)]
    assert output.next_goal == "Tap search"
    assert output.thinking == "The search box is visible."
    provider.generate.assert_awaited_once_with(MESSAGES)


@pytest.mark.asyncio
async def test_fenced_reply_is_accepted():
    provider = _provider(return_value=f"```json\n{VALID_REPLY}\n```")

    output = await _orchestrator(provider).generate_decision(MESSAGES)

    assert output.action == [TapElement(1)]


@pytest.mark.asyncio
async def test_non_json_reply_is_retried():
    provider = _provider(side_effect=["I think I should tap search.", VALID_REPLY])

    with patch("screenpilot.utils.asyncio.sleep", new_callable=AsyncMock) as sleep:
        output = await _orchestrator(provider).generate_decision(MESSAGES)

    assert output is not None
    assert provider.generate.await_count == 2
    sleep.assert_awaited_once_with(1.0)


@pytest.mark.asyncio
async def test_all_attempts_failing_yields_no_decision():
    provider = _provider(side_effect=TransportError("connection reset"))
    orchestrator = _orchestrator(provider)

    with patch("screenpilot.utils.asyncio.sleep", new_callable=AsyncMock) as sleep:
        output = await orchestrator.generate_decision(MESSAGES)

    assert output is None
    assert provider.generate.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]
    assert orchestrator.last_failure_reason.startswith("transport:")


@pytest.mark.asyncio
async def test_blocked_reply_is_reported(caplog):
    provider = _provider(side_effect=ContentBlockedError("SAFETY"))
    orchestrator = _orchestrator(provider, max_retries=2)

    with patch("screenpilot.utils.asyncio.sleep", new_callable=AsyncMock):
        output = await orchestrator.generate_decision(MESSAGES)

    assert output is None
    assert provider.generate.await_count == 2
    assert orchestrator.last_failure_reason == "blocked: SAFETY"
    assert "Model response blocked. Reason: SAFETY" in caplog.text


@pytest.mark.asyncio
async def test_unknown_action_raises_decoding_error():
    provider = _provider(return_value='{"action": [{"foo_bar": {}}]}')

    with pytest.raises(ActionDecodingError) as exc:
        await _orchestrator(provider).generate_decision(MESSAGES)

    assert exc.value.action_name == "foo_bar"
    provider.generate.assert_awaited_once()


def test_provider_selection():
    direct, proxy = MagicMock(), MagicMock()

    with_proxy = AgentSettings(proxy_url="https://proxy.example/generate", proxy_key="secret")
    assert LLMOrchestrator(with_proxy, direct=direct, proxy=proxy).select_provider() is proxy

    url_only = AgentSettings(proxy_url="https://proxy.example/generate")
    assert LLMOrchestrator(url_only, direct=direct, proxy=proxy).select_provider() is direct

    assert LLMOrchestrator(AgentSettings(api_keys=["k"]), direct=direct, proxy=proxy).select_provider() is direct


def test_parse_agent_output():
    output = parse_agent_output({"action": [{"back": {}}], "memory": 42})
    assert output.action == [Back()]
    assert output.memory == "42"
    assert output.evaluation_previous_goal is None

    with pytest.raises(ActionDecodingError):
        parse_agent_output({"next_goal": "nothing to do"})
