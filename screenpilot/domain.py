from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .actions.schema import Action
from .perception.ui_tree import UiNode

EMPTY_SCREEN_TEXT = "The screen is empty or contains no interactive elements."
UNAVAILABLE_DUMP = '<hierarchy error="service not available"/>'


@dataclass
class RawScreenData:
    """What the observation collaborator returns for one screen dump."""
    xml: str
    pixels_above: int = 0
    pixels_below: int = 0
    screen_width: int = 0
    screen_height: int = 0

    @classmethod
    def unavailable(cls) -> "RawScreenData":
        return cls(xml=UNAVAILABLE_DUMP)


@dataclass(frozen=True)
class ScreenAnalysis:
    """
    Snapshot of the screen for one perceive -> decide -> act cycle.

    ``element_map`` is read-only and belongs to this snapshot only; indices
    from an older analysis must never be resolved against a newer one.
    """
    ui_representation: str
    is_keyboard_open: bool
    activity_name: str
    element_map: Mapping[int, UiNode] = field(default_factory=dict)
    scroll_up: int = 0
    scroll_down: int = 0
    node_keys: frozenset = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "element_map", MappingProxyType(dict(self.element_map)))

    def element(self, index: int) -> Optional[UiNode]:
        return self.element_map.get(index)

    def center_of_element(self, index: int) -> Optional[Tuple[int, int]]:
        node = self.element(index)
        return node.center() if node is not None else None


@dataclass
class ActionResult:
    """Outcome of one executed action."""
    is_done: bool = False
    success: Optional[bool] = None
    error: Optional[str] = None
    attachments: Optional[List[str]] = None
    long_term_memory: Optional[str] = None
    extracted_content: Optional[str] = None
    include_extracted_content_only_once: bool = False

    def __post_init__(self):
        if self.success is True and not self.is_done:
            raise ValueError(
                "success=True can only be set when is_done=True. "
                "For regular actions that succeed, leave success as None."
            )


@dataclass
class AgentOutput:
    """The model's structured decision for one step."""
    action: List[Action]
    evaluation_previous_goal: Optional[str] = None
    memory: Optional[str] = None
    next_goal: Optional[str] = None
    thinking: Optional[str] = None


@dataclass
class AgentStepInfo:
    step_number: int
    max_steps: int

    def is_last_step(self) -> bool:
        return self.step_number >= self.max_steps


@dataclass
class AgentState:
    """Mutable per-session loop state."""
    n_steps: int = 1
    consecutive_failures: int = 0
    last_result: Optional[List[ActionResult]] = None
    last_model_output: Optional[AgentOutput] = None
    previous_node_keys: frozenset = frozenset()
    stopped: bool = False


@dataclass
class StepMetadata:
    step_number: int
    step_start_time: float
    step_end_time: float

    @property
    def duration_seconds(self) -> float:
        return self.step_end_time - self.step_start_time


@dataclass
class AgentHistory:
    """Complete record of one step."""
    model_output: Optional[AgentOutput]
    result: List[ActionResult]
    state: ScreenAnalysis
    metadata: Optional[StepMetadata] = None


@dataclass
class AgentHistoryList:
    history: List[AgentHistory] = field(default_factory=list)

    @property
    def total_duration_seconds(self) -> float:
        return sum(h.metadata.duration_seconds for h in self.history if h.metadata)

    def add_item(self, item: AgentHistory):
        self.history.append(item)


@dataclass
class AgentRunResult:
    """Result of a single task session."""
    success: bool
    steps: int
    final_text: Optional[str] = None
    attachments: List[str] = field(default_factory=list)
    history: AgentHistoryList = field(default_factory=AgentHistoryList)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IntentDescriptor:
    """Platform-neutral description of an external intent to launch."""
    action: str
    data: Optional[str] = None
    mime_type: Optional[str] = None
    extras: Mapping[str, str] = field(default_factory=dict)
    chooser_title: Optional[str] = None
