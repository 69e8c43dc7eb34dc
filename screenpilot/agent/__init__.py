from .loop import Agent, LoopPhase, create_agent
from .recorder import StepRecorder

__all__ = ["Agent", "LoopPhase", "create_agent", "StepRecorder"]
