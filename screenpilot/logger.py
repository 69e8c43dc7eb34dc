"""
Unified logging for the agent loop.
===================================
Provides consistent step-progress lines with emoji prefixes.
"""
import logging
from enum import Enum


class LogLevel(Enum):
    """Log level indicators with emoji prefixes."""
    PHASE = "🚀"
    SENSE = "👀"
    THINK = "🧠"
    ACT = "💪"
    SUCCESS = "✅"
    WARNING = "⚠️"
    ERROR = "❌"
    DEBUG = "🔍"
    INFO = "ℹ️"


class AgentLogger:
    """Step logger used by the agent loop."""

    def __init__(self, name: str = "agent.steps", verbose: bool = True):
        self.logger = logging.getLogger(name)
        self.verbose = verbose
        self._setup_handler()

    def _setup_handler(self):
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)
        self.logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)

    def phase(self, message: str):
        """Log a session-level event."""
        self.logger.info(f"\n{LogLevel.PHASE.value} {message}")

    def step(self, step_number: int, max_steps: int):
        """Log the start of a loop iteration."""
        self.logger.info(f"\n--- Step {step_number}/{max_steps} ---")

    def sense(self, message: str):
        self.logger.info(f"{LogLevel.SENSE.value} {message}")

    def think(self, message: str):
        self.logger.info(f"{LogLevel.THINK.value} {message}")

    def act(self, message: str):
        self.logger.info(f"{LogLevel.ACT.value} {message}")

    def success(self, message: str):
        self.logger.info(f"{LogLevel.SUCCESS.value} {message}")

    def warning(self, message: str):
        self.logger.warning(f"{LogLevel.WARNING.value} {message}")

    def error(self, message: str):
        self.logger.error(f"{LogLevel.ERROR.value} {message}")

    def debug(self, message: str):
        """Log a debug message (only if verbose)."""
        if self.verbose:
            self.logger.debug(f"{LogLevel.DEBUG.value} {message}")

    def info(self, message: str):
        self.logger.info(f"{LogLevel.INFO.value} {message}")
