from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


class MessageRole(Enum):
    USER = "user"
    MODEL = "model"
    TOOL = "tool"


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class Message:
    """One entry of the conversation sent to the model."""
    role: MessageRole
    parts: List[TextPart]
    tool_code: Optional[str] = None

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role=MessageRole.USER, parts=[TextPart(text)])

    @classmethod
    def model(cls, text: str) -> "Message":
        return cls(role=MessageRole.MODEL, parts=[TextPart(text)])

    @property
    def text(self) -> str:
        return "\n".join(part.text for part in self.parts)

    def map_text(self, transform: Callable[[str], str]) -> "Message":
        return replace(self, parts=[TextPart(transform(part.text)) for part in self.parts])

    def to_wire(self) -> Dict[str, Any]:
        return {"role": self.role.value, "parts": [{"text": part.text} for part in self.parts]}


@dataclass(frozen=True)
class HistoryItem:
    """
    One entry of the agent history shown to the model. Items are appended
    once per step and never modified afterwards.
    """
    step_number: Optional[int] = None
    evaluation: Optional[str] = None
    memory: Optional[str] = None
    next_goal: Optional[str] = None
    action_results: Optional[str] = None
    error: Optional[str] = None
    system_message: Optional[str] = None

    def to_prompt_string(self) -> str:
        tag = f"step_{self.step_number}" if self.step_number is not None else "step_unknown"
        if self.error is not None:
            content = self.error
        elif self.system_message is not None:
            content = self.system_message
        else:
            lines = []
            if self.evaluation is not None:
                lines.append(f"Evaluation of Previous Step: {self.evaluation}")
            if self.memory is not None:
                lines.append(f"Memory: {self.memory}")
            if self.next_goal is not None:
                lines.append(f"Next Goal: {self.next_goal}")
            if self.action_results is not None:
                lines.append(self.action_results)
            content = "\n".join(lines)
        return f"<{tag}>\n{content}\n</{tag}>"


@dataclass
class MessageHistory:
    """System message, current state message and transient context messages."""
    system_message: Optional[Message] = None
    state_message: Optional[Message] = None
    context_messages: List[Message] = field(default_factory=list)

    def get_messages(self) -> List[Message]:
        head = [m for m in (self.system_message, self.state_message) if m is not None]
        return head + list(self.context_messages)
