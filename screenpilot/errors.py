"""
Error taxonomy for the agent.
=============================
Everything raised inside the control loop derives from ScreenPilotError so the
loop can turn it into a history entry instead of aborting the session.
"""
from typing import Optional


class ScreenPilotError(Exception):
    """Base class for all agent errors."""


class ActionDecodingError(ScreenPilotError, ValueError):
    """The model emitted an unknown action or a parameter of the wrong type."""

    def __init__(self, message: str, action_name: Optional[str] = None):
        super().__init__(message)
        self.action_name = action_name


class LLMError(ScreenPilotError):
    """An LLM call produced no usable reply."""


class TransportError(LLMError):
    """Network failure, non-2xx status or empty body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ContentBlockedError(LLMError):
    """The model refused to answer (safety / policy block)."""

    def __init__(self, reason: str = "UNKNOWN"):
        super().__init__(f"Blocked or empty response from API. Reason: {reason}")
        self.reason = reason


class ConfigurationError(ScreenPilotError):
    """Missing or invalid local configuration."""


class TriggerSecurityError(ScreenPilotError, PermissionError):
    """The platform refused to schedule a trigger."""


class DeviceError(ScreenPilotError):
    """A device command failed or timed out."""
