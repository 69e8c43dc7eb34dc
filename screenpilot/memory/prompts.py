import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..actions.intents import IntentRegistry
from ..actions.schema import describe_actions
from ..config import AgentSettings
from ..domain import AgentStepInfo, ScreenAnalysis
from ..interfaces import IFileSandbox
from .messages import Message, MessageRole, TextPart

logger = logging.getLogger("agent.memory")

AGENT_SYSTEM_PROMPT = """You are an AI agent operating an Android phone on behalf of a user.
Your goal is to accomplish the task given in <user_request> by reading the screen and acting on it.

### 1. INPUT
Every turn you receive:
- <agent_history>: a chronological summary of your previous steps and their results.
- <agent_state>: the user request, your file system, your todo list and the step counter.
- <android_state>: the current activity, keyboard status and the interactive elements on screen.
- <read_state>: content you asked to read in the previous step. It is shown only once.

Interactive elements are listed as `[index] text:"..." <resource-id> <extra info> <class>`.
Only elements with a numeric [index] can be used in actions.
Elements marked with `*` appeared since the last step.
Indentation shows parent/child structure.

### 2. RULES
- Use only the indices shown on the current screen. Indices change after every action.
- If the element you need is not visible, scroll or navigate to reveal it.
- Use `ask` only when the task cannot continue without user input.
- Keep your plan in todo.md and intermediate results in results.md for long tasks.
- Call `done` as soon as the task is complete, or when it is impossible to finish.
- You may return up to {max_actions} actions per step. They run in order; the screen may change
  between them, so chain actions only when you are sure the screen will not change.

### 3. AVAILABLE ACTIONS
{available_actions}

### 4. OUTPUT FORMAT
Return valid JSON only, in exactly this shape:

{{
  "thinking": "Your reasoning about the current state.",
  "evaluation_previous_goal": "Success, failure or uncertainty of the previous step, in one sentence.",
  "memory": "1-3 sentences of progress tracking to remember.",
  "next_goal": "The immediate goal for this step.",
  "action": [{{"action_name": {{"param": "value"}}}}]
}}
"""

EMPTY_TODO_TEXT = "[Current todo.md is empty, fill it with your plan when applicable]"
LAST_STEP_NOTE = "This is your last step. Use only the done action and report what you achieved."
INTENT_USAGE_HINT = (
    'Usage: To launch any of the above intents, add an action like {"launch_intent": '
    '{"intent_name": "Dial", "parameters": {"phone_number": "+123456789"}}}.'
)


class SystemPromptLoader:
    """Builds the one-time system message from the template and the action registry."""

    def __init__(self, settings: AgentSettings, intents: Optional[IntentRegistry] = None):
        self.settings = settings
        self.intents = intents

    def get_system_message(self) -> Message:
        if self.settings.override_system_message:
            prompt = self.settings.override_system_message
        else:
            prompt = AGENT_SYSTEM_PROMPT.format(
                max_actions=self.settings.max_actions_per_step,
                available_actions=describe_actions(),
            )

        catalog = self.intents.describe() if self.intents else ""
        if catalog.strip():
            prompt += f"\n\n<intents_catalog>\n{catalog}\n</intents_catalog>\n\n{INTENT_USAGE_HINT}"

        if self.settings.extend_system_message:
            prompt += f"\n{self.settings.extend_system_message}"

        logger.debug(f"System prompt built ({len(prompt)} chars)")
        return Message(role=MessageRole.MODEL, parts=[TextPart(prompt)])


@dataclass
class UserMessageArgs:
    task: str
    screen: ScreenAnalysis
    file_system: IFileSandbox
    agent_history_description: Optional[str]
    read_state_description: Optional[str]
    step_info: Optional[AgentStepInfo]
    sensitive_data_description: Optional[str]
    max_ui_representation_length: int = 40000


class UserMessageBuilder:
    """Assembles the per-step state message."""

    @staticmethod
    def build(args: UserMessageArgs) -> Message:
        sections = [
            f"<agent_history>\n{(args.agent_history_description or '').strip() or 'No history yet.'}\n</agent_history>",
            f"<agent_state>\n{UserMessageBuilder._agent_state_block(args)}\n</agent_state>",
            f"<android_state>\n{UserMessageBuilder._android_state_block(args)}\n</android_state>",
        ]
        if args.read_state_description and args.read_state_description.strip():
            sections.append(f"<read_state>\n{args.read_state_description.strip()}\n</read_state>")
        return Message.user("\n\n".join(sections))

    @staticmethod
    def _android_state_block(args: UserMessageArgs) -> str:
        screen = args.screen
        limit = args.max_ui_representation_length
        listing = screen.ui_representation
        note = ""
        if len(listing) > limit:
            listing = listing[:limit]
            note = f" (truncated to {limit} characters)"
        keyboard = "open" if screen.is_keyboard_open else "closed"
        return (
            f"Current Activity: {screen.activity_name}\n"
            f"Keyboard: {keyboard}\n"
            f"Visible elements on the current screen:{note}\n"
            f"{listing}"
        ).strip()

    @staticmethod
    def _agent_state_block(args: UserMessageArgs) -> str:
        todo = args.file_system.todo_contents()
        if not todo.strip():
            todo = EMPTY_TODO_TEXT

        if args.step_info is not None:
            now = datetime.now().strftime("%Y-%m-%d %H:%M")
            step_text = (f"Step {args.step_info.step_number} of {args.step_info.max_steps} max possible steps\n"
                         f"Current date and time: {now}")
            if args.step_info.is_last_step():
                step_text += f"\n{LAST_STEP_NOTE}"
        else:
            step_text = "Step information not available."

        lines = [
            "<user_request>", args.task, "</user_request>",
            "<file_system>", args.file_system.describe(), "</file_system>",
            "<todo_contents>", todo, "</todo_contents>",
        ]
        if args.sensitive_data_description:
            lines += ["<sensitive_data>", args.sensitive_data_description, "</sensitive_data>"]
        lines += ["<step_info>", step_text, "</step_info>"]
        return "\n".join(lines).strip()
