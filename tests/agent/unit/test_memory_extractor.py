import pytest
from unittest.mock import AsyncMock, MagicMock

from screenpilot.memory.extractor import LLMMemoryExtractor, cosine_similarity


def _llm(reply):
    llm = MagicMock()
    llm.generate = AsyncMock(return_value=reply)
    return llm


def test_cosine_similarity():
    assert cosine_similarity("User likes jazz", "user LIKES jazz") == pytest.approx(1.0)
    assert cosine_similarity("User likes jazz", "Lives in Berlin") == 0.0
    assert cosine_similarity("", "anything") == 0.0


@pytest.mark.asyncio
async def test_near_duplicates_are_skipped():
    llm = _llm('{"memories": ["User likes jazz", "User likes jazz music", "Lives in Berlin", ""]}')
    extractor = LLMMemoryExtractor(llm)

    await extractor.extract_and_store("Play music", "<step_1>\nOpened Spotify\n</step_1>")

    assert extractor.memories == ["User likes jazz", "Lives in Berlin"]
    prompt = llm.generate.await_args.args[0][0].text
    assert "Task: Play music" in prompt
    assert "Opened Spotify" in prompt


@pytest.mark.asyncio
async def test_threshold_is_configurable():
    extractor = LLMMemoryExtractor(_llm('{"memories": ["User likes jazz", "User likes jazz music"]}'),
                                   dedup_threshold=0.95)

    await extractor.extract_and_store("t", "h")

    assert len(extractor.memories) == 2


@pytest.mark.asyncio
async def test_unusable_reply_stores_nothing():
    extractor = LLMMemoryExtractor(_llm("no memories today"))
    await extractor.extract_and_store("t", "h")
    assert extractor.memories == []

    extractor = LLMMemoryExtractor(_llm('{"memories": "User likes jazz"}'))
    await extractor.extract_and_store("t", "h")
    assert extractor.memories == []
