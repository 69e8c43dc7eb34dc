"""
Agent configuration constants.
==============================
Centralizes limits, delays and model settings.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional


class Limits:
    """Loop limits and thresholds."""
    MAX_STEPS = 150
    MAX_FAILURES = 3
    MAX_ACTIONS_PER_STEP = 10
    MAX_UI_REPRESENTATION_LENGTH = 40000
    MAX_ERROR_LENGTH = 200
    DEBOUNCE_SECONDS = 60.0
    MEMORY_DEDUP_THRESHOLD = 0.85


class Delays:
    """Fixed delays in seconds."""
    WAIT = 5.0
    SETTLE = 0.2
    STEP = 1.0
    FAILURE = 1.0


class RetryPolicy:
    """Backoff parameters for LLM calls."""
    MAX_ATTEMPTS = 3
    INITIAL_DELAY = 1.0
    MAX_DELAY = 16.0
    FACTOR = 2.0


DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


@dataclass
class AgentSettings:
    """Runtime configuration for one agent session."""
    # Loop
    max_steps: int = Limits.MAX_STEPS
    max_failures: int = Limits.MAX_FAILURES
    max_actions_per_step: int = Limits.MAX_ACTIONS_PER_STEP
    max_history_items: Optional[int] = None
    max_ui_representation_length: int = Limits.MAX_UI_REPRESENTATION_LENGTH

    # LLM
    model_name: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_keys: List[str] = field(default_factory=list)
    proxy_url: Optional[str] = None
    proxy_key: Optional[str] = None
    llm_timeout: float = 60.0
    max_retries: int = RetryPolicy.MAX_ATTEMPTS
    retry_initial_delay: float = RetryPolicy.INITIAL_DELAY
    retry_max_delay: float = RetryPolicy.MAX_DELAY
    retry_factor: float = RetryPolicy.FACTOR
    temperature: float = 0.2

    # Timing
    wait_seconds: float = Delays.WAIT
    settle_delay: float = Delays.SETTLE
    step_delay: float = Delays.STEP
    failure_delay: float = Delays.FAILURE

    # Prompt
    override_system_message: Optional[str] = None
    extend_system_message: Optional[str] = None
    sensitive_data: Dict[str, str] = field(default_factory=dict)

    # Session
    workspace_dir: str = "agent_workspace"
    record_dir: Optional[str] = None
    memory_dedup_threshold: float = Limits.MEMORY_DEDUP_THRESHOLD
    verbose: bool = True

    @property
    def has_proxy(self) -> bool:
        return bool(self.proxy_url and self.proxy_key)

    @classmethod
    def from_env(cls, **overrides) -> "AgentSettings":
        """Builds settings from SCREENPILOT_* environment variables."""
        values = {}
        keys = os.getenv("SCREENPILOT_API_KEYS", "")
        parsed_keys = [k.strip() for k in keys.split(",") if k.strip()]
        if parsed_keys:
            values["api_keys"] = parsed_keys
        if os.getenv("SCREENPILOT_MODEL"):
            values["model_name"] = os.environ["SCREENPILOT_MODEL"]
        if os.getenv("SCREENPILOT_BASE_URL"):
            values["base_url"] = os.environ["SCREENPILOT_BASE_URL"]
        if os.getenv("SCREENPILOT_PROXY_URL"):
            values["proxy_url"] = os.environ["SCREENPILOT_PROXY_URL"]
        if os.getenv("SCREENPILOT_PROXY_KEY"):
            values["proxy_key"] = os.environ["SCREENPILOT_PROXY_KEY"]
        if os.getenv("SCREENPILOT_MAX_STEPS"):
            values["max_steps"] = int(os.environ["SCREENPILOT_MAX_STEPS"])
        if os.getenv("SCREENPILOT_MAX_HISTORY"):
            values["max_history_items"] = int(os.environ["SCREENPILOT_MAX_HISTORY"])
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
