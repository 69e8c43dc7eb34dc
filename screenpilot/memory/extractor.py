import logging
import math
import re
from collections import Counter
from typing import List

from ..config import Limits
from ..interfaces import ILLMProvider, IMemoryExtractor
from ..utils import clean_json_response
from .messages import Message

logger = logging.getLogger("agent.memory")

MEMORY_EXTRACTION_PROMPT = """Below is the history of a finished phone-automation session.
Extract facts about the user that will still be useful in future sessions
(names, preferences, recurring contacts, habits). Ignore transient screen details.

Task: {task}

Session:
{transcript}

Return valid JSON only: {{"memories": ["fact 1", "fact 2"]}}. Return an empty list if nothing is worth keeping.
"""

_TOKEN = re.compile(r"[a-z0-9]+")


def cosine_similarity(a: str, b: str) -> float:
    """Bag-of-words cosine similarity of two short texts."""
    va, vb = Counter(_TOKEN.findall(a.lower())), Counter(_TOKEN.findall(b.lower()))
    if not va or not vb:
        return 0.0
    dot = sum(va[t] * vb[t] for t in va.keys() & vb.keys())
    norm = math.sqrt(sum(v * v for v in va.values())) * math.sqrt(sum(v * v for v in vb.values()))
    return dot / norm


class LLMMemoryExtractor(IMemoryExtractor):
    """
    Asks the model for durable user facts after a session and keeps the ones
    that are not near-duplicates of what is already stored.
    """

    def __init__(self, llm: ILLMProvider, dedup_threshold: float = Limits.MEMORY_DEDUP_THRESHOLD):
        self.llm = llm
        self.dedup_threshold = dedup_threshold
        self.memories: List[str] = []

    def is_duplicate(self, fact: str) -> bool:
        return any(cosine_similarity(fact, known) >= self.dedup_threshold for known in self.memories)

    async def extract_and_store(self, task: str, transcript: str):
        prompt = MEMORY_EXTRACTION_PROMPT.format(task=task, transcript=transcript)
        raw = await self.llm.generate([Message.user(prompt)])
        data = clean_json_response(raw) or {}
        facts = data.get("memories") or []
        if not isinstance(facts, list):
            logger.warning(f"Memory extraction returned a non-list: {facts!r}")
            return

        added = 0
        for fact in facts:
            if not isinstance(fact, str) or not fact.strip():
                continue
            if self.is_duplicate(fact):
                logger.debug(f"Skipping near-duplicate memory: {fact}")
                continue
            self.memories.append(fact.strip())
            added += 1
        logger.info(f"Stored {added} new memories ({len(self.memories)} total)")
