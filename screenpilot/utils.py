import asyncio
import functools
import json
import logging
import re
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger("agent.utils")


def clean_json_response(response: str) -> Optional[dict]:
    """
    Extracts and parses a JSON object from an LLM response.
    Handles replies wrapped in markdown fences, trailing commas, and literal
    newlines inside string values. Returns None when no object can be recovered.
    """
    if not response:
        return None

    text = response.strip()

    pattern = r"```(?:json)?\s*([\s\S]*?)\s*```"
    match = re.search(pattern, text)
    if match:
        text = match.group(1)

    def _repair_json(s):
        parts = re.split(r'("(?:\\.|[^"\\])*")', s)
        for idx in range(1, len(parts), 2):
            parts[idx] = parts[idx].replace('\n', '\\n').replace('\r', '\\r')
        s = "".join(parts)
        s = re.sub(r',\s*([}\]])', r'\1', s)
        return s

    candidates = [text]
    start = text.find('{')
    end = text.rfind('}') + 1
    if start != -1 and end > start and (start, end) != (0, len(text)):
        candidates.append(text[start:end])

    for candidate in candidates:
        for loader in (candidate, _repair_json(candidate)):
            try:
                parsed = json.loads(loader, strict=False)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                return parsed
    return None


def with_async_retry(max_attempts: int = 3, initial_delay: float = 1.0,
                     max_delay: float = 16.0, factor: float = 2.0):
    """
    Retries an async callable with exponential backoff.
    Any exception counts as a failed attempt. After max_attempts failures the
    wrapper returns None instead of raising.
    """
    def decorator(func: Callable[..., Awaitable[Any]]):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            current_delay = initial_delay
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    logger.error(f"Attempt {attempt + 1}/{max_attempts} failed: {type(e).__name__}: {e}")
                    if attempt == max_attempts - 1:
                        logger.error(f"All {max_attempts} retry attempts failed.")
                        return None
                await asyncio.sleep(current_delay)
                current_delay = min(current_delay * factor, max_delay)
            return None
        return wrapper
    return decorator


def spawn_background(coro: Awaitable[Any], name: str) -> "asyncio.Task":
    """
    Starts a coroutine as a named background task whose failure is logged
    even though nobody awaits it.
    """
    task = asyncio.ensure_future(coro)
    if hasattr(task, "set_name"):
        task.set_name(name)

    def _report(t: "asyncio.Task"):
        if t.cancelled():
            logger.warning(f"Background task '{name}' was cancelled")
            return
        exc = t.exception()
        if exc is not None:
            logger.error(f"Background task '{name}' failed: {exc}")

    task.add_done_callback(_report)
    return task


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]
