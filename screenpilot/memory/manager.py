import logging
from typing import Dict, List, Optional

from ..config import AgentSettings, Limits
from ..domain import ActionResult, AgentOutput, AgentStepInfo, ScreenAnalysis
from ..interfaces import IFileSandbox
from ..utils import truncate
from ..actions.intents import IntentRegistry
from .messages import HistoryItem, Message, MessageHistory
from .prompts import SystemPromptLoader, UserMessageArgs, UserMessageBuilder

logger = logging.getLogger("agent.memory")

INITIAL_HISTORY_TEXT = "Agent initialized"
NOT_ASKED_YET_TEXT = "Agent not asked to create output yet"
INVALID_OUTPUT_TEXT = "Agent failed to produce a valid output."


class ConversationState:
    """
    Short-term memory of one task session.

    Holds the system message, the state message rebuilt every step, transient
    context messages, the append-only history log and the one-shot read buffer.
    Every message leaving this class has configured sensitive values replaced
    with ``<secret>NAME</secret>`` placeholders.
    """

    def __init__(self, task: str, file_system: IFileSandbox, settings: AgentSettings,
                 intents: Optional[IntentRegistry] = None,
                 sensitive_data: Optional[Dict[str, str]] = None):
        self.task = task
        self.file_system = file_system
        self.settings = settings
        self.sensitive_data = dict(sensitive_data if sensitive_data is not None else settings.sensitive_data)

        self.history = MessageHistory()
        self.history_items: List[HistoryItem] = [HistoryItem(step_number=0, system_message=INITIAL_HISTORY_TEXT)]
        self.read_state_description = ""

        system_message = SystemPromptLoader(settings, intents).get_system_message()
        self.history.system_message = self.filter_sensitive_data(system_message)

    def create_state_message(self, model_output: Optional[AgentOutput], results: Optional[List[ActionResult]],
                             step_info: Optional[AgentStepInfo], screen: ScreenAnalysis,
                             error: Optional[str] = None):
        """Records the last step's outcome, then rebuilds the state message for the next call."""
        self.update_history(model_output, results, step_info, error)

        args = UserMessageArgs(
            task=self.task,
            screen=screen,
            file_system=self.file_system,
            agent_history_description=self.get_agent_history_description(),
            read_state_description=self.read_state_description,
            step_info=step_info,
            sensitive_data_description=self.get_sensitive_data_description(),
            max_ui_representation_length=self.settings.max_ui_representation_length,
        )
        self.history.state_message = self.filter_sensitive_data(UserMessageBuilder.build(args))
        self.history.context_messages.clear()

    def update_history(self, model_output: Optional[AgentOutput], results: Optional[List[ActionResult]],
                       step_info: Optional[AgentStepInfo], error: Optional[str] = None):
        """
        Appends exactly one HistoryItem and refills the one-shot read buffer.
        ``error`` replaces the default wording when there is no model output.
        """
        self.read_state_description = ""

        lines = []
        for i, result in enumerate(results or [], start=1):
            if result.include_extracted_content_only_once and result.extracted_content and result.extracted_content.strip():
                self.read_state_description += result.extracted_content + "\n"

            if result.long_term_memory and result.long_term_memory.strip():
                lines.append(f"Action {i}: {result.long_term_memory}")
            elif (result.extracted_content and result.extracted_content.strip()
                  and not result.include_extracted_content_only_once):
                lines.append(f"Action {i}: {result.extracted_content}")
            elif result.error and result.error.strip():
                lines.append(f"Action {i}: ERROR - {truncate(result.error, Limits.MAX_ERROR_LENGTH)}")

        step_number = step_info.step_number if step_info is not None else None
        if model_output is None:
            if error:
                text = truncate(error, Limits.MAX_ERROR_LENGTH)
            else:
                text = NOT_ASKED_YET_TEXT if step_number == 1 else INVALID_OUTPUT_TEXT
            item = HistoryItem(step_number=step_number, error=text)
        else:
            item = HistoryItem(
                step_number=step_number,
                evaluation=model_output.evaluation_previous_goal,
                memory=model_output.memory,
                next_goal=model_output.next_goal,
                action_results="Action Results:\n" + "\n".join(lines) if results is not None else None,
            )
        self.history_items.append(item)

    def add_new_task(self, new_task: str):
        self.task = new_task
        logger.info(f"New task added: {new_task}")
        self.history_items.append(HistoryItem(step_number=0, system_message=f"<user_request> added: {new_task}"))

    def add_context_message(self, message: Message):
        self.history.context_messages.append(self.filter_sensitive_data(message))

    def get_messages(self) -> List[Message]:
        return self.history.get_messages()

    def get_agent_history_description(self) -> str:
        items = self.history_items
        cap = self.settings.max_history_items
        if cap is None or len(items) <= max(cap, 1):
            return "\n".join(item.to_prompt_string() for item in items)

        # the first item is always kept
        recent = items[len(items) - (cap - 1):] if cap > 1 else []
        omitted = len(items) - 1 - len(recent)
        rendered = [items[0].to_prompt_string(), f"<sys>[... {omitted} previous steps omitted...]</sys>"]
        rendered.extend(item.to_prompt_string() for item in recent)
        return "\n".join(rendered)

    def get_sensitive_data_description(self) -> Optional[str]:
        if not self.sensitive_data:
            return None
        names = ", ".join(self.sensitive_data)
        return (f"Here are placeholders for sensitive data:\n{names}\n"
                "To use them, write <secret>the placeholder name</secret>")

    def filter_sensitive_data(self, message: Message) -> Message:
        if not self.sensitive_data:
            return message

        def scrub(text: str) -> str:
            for name, value in self.sensitive_data.items():
                if value:
                    text = text.replace(value, f"<secret>{name}</secret>")
            return text

        return message.map_text(scrub)
