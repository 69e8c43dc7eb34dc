import asyncio
import logging
import time
from enum import Enum
from typing import List, Optional, Set

from ..actions.executor import ActionExecutor
from ..actions.intents import IntentRegistry
from ..actions.schema import spec_for
from ..config import AgentSettings
from ..domain import (
    ActionResult, AgentHistory, AgentHistoryList, AgentOutput, AgentRunResult, AgentState, AgentStepInfo,
    StepMetadata,
)
from ..errors import ActionDecodingError
from ..fs.sandbox import FileSandbox
from ..interfaces import IAppCatalog, IEyes, IFinger, IMemoryExtractor, IUserChannel
from ..llm.orchestrator import LLMOrchestrator
from ..logger import AgentLogger
from ..memory.manager import ConversationState
from ..memory.messages import Message
from ..perception.perception import Perception
from ..utils import spawn_background
from .recorder import StepRecorder

logger = logging.getLogger("agent.loop")

CORRECTIVE_NOTE = ("System Note: Your previous output was not valid JSON. "
                   "Please ensure your response is correctly formatted.")


class LoopPhase(Enum):
    PERCEIVING = "perceiving"
    DECIDING = "deciding"
    ACTING = "acting"
    UPDATING = "updating"
    DONE = "done"
    FAILED = "failed"


class Agent:
    """
    Runs the perceive -> decide -> act loop for one task.

    Steps are strictly sequential. A step without a usable model decision is
    recorded in history and the loop moves on; the session ends only on a
    ``done`` action, the step limit, too many consecutive failed decisions,
    or ``stop()``.
    """

    def __init__(self, settings: AgentSettings, conversation: ConversationState, perception: Perception,
                 orchestrator: LLMOrchestrator, executor: ActionExecutor,
                 recorder: Optional[StepRecorder] = None,
                 memory_extractor: Optional[IMemoryExtractor] = None,
                 step_logger: Optional[AgentLogger] = None):
        self.settings = settings
        self.conversation = conversation
        self.perception = perception
        self.orchestrator = orchestrator
        self.executor = executor
        self.recorder = recorder
        self.memory_extractor = memory_extractor
        self.log = step_logger or AgentLogger("agent.steps", verbose=settings.verbose)

        self.state = AgentState()
        self.history = AgentHistoryList()
        self.phase = LoopPhase.PERCEIVING
        self._background: Set[asyncio.Task] = set()

    def stop(self):
        """Requests an operator stop; the current step finishes first."""
        self.state.stopped = True

    async def run(self, task: str) -> AgentRunResult:
        """Runs one session. Step counters and the run history start fresh; the conversation carries over."""
        self.state = AgentState()
        self.history = AgentHistoryList()
        self.conversation.add_new_task(task)
        if self.recorder:
            self.recorder.start(task)
        self.log.phase(f"Agent starting task: '{task}'")

        max_steps = self.settings.max_steps
        pending_error: Optional[str] = None
        final: Optional[ActionResult] = None
        stop_reason = "max_steps"

        while not self.state.stopped and self.state.n_steps <= max_steps:
            step_info = AgentStepInfo(self.state.n_steps, max_steps)
            started = time.time()
            self.log.step(step_info.step_number, max_steps)

            # 1. Perceive
            self.phase = LoopPhase.PERCEIVING
            self.log.sense("Sensing screen state...")
            screen = await self.perception.analyze(self.state.previous_node_keys)
            self.state.previous_node_keys = screen.node_keys
            keyboard = "open" if screen.is_keyboard_open else "closed"
            self.log.debug(f"Screen {screen.activity_name}: {len(screen.element_map)} interactive elements, "
                           f"keyboard {keyboard}")

            # 2. Fold the last step into memory and build the prompt
            self.phase = LoopPhase.UPDATING
            self.conversation.create_state_message(
                self.state.last_model_output, self.state.last_result, step_info, screen, error=pending_error,
            )
            pending_error = None
            if self.state.consecutive_failures > 0:
                self.conversation.add_context_message(Message.user(CORRECTIVE_NOTE))

            # 3. Decide
            self.phase = LoopPhase.DECIDING
            self.log.think("Asking LLM for next action...")
            output, decision_error = await self._decide()

            if output is None:
                self.state.consecutive_failures += 1
                self.state.last_model_output = None
                self.state.last_result = None
                pending_error = decision_error
                self.log.error(f"No valid decision this step ({self.state.consecutive_failures}/"
                               f"{self.settings.max_failures}): {decision_error or 'model call failed'}")
                self._record(step_info, screen, None, [], started, decision_error)
                self.state.n_steps += 1
                if self.state.consecutive_failures >= self.settings.max_failures:
                    self.log.error("Agent failed too many times consecutively. Stopping.")
                    stop_reason = "max_failures"
                    break
                await asyncio.sleep(self.settings.failure_delay)
                continue

            self.state.consecutive_failures = 0
            self.state.last_model_output = output
            self.log.info(f"Evaluation: {output.evaluation_previous_goal}")
            self.log.debug(f"Memory: {output.memory}")
            self.log.think(f"LLM decided: {output.next_goal}")

            # 4. Act
            self.phase = LoopPhase.ACTING
            results = await self._execute_actions(output, screen)
            self.state.last_result = results
            self._record(step_info, screen, output, results, started)

            final = next((r for r in results if r.is_done), None)
            if final is not None:
                self.conversation.update_history(output, results, step_info)
                stop_reason = "done"
                self.state.stopped = True
                break

            self.state.n_steps += 1
            await asyncio.sleep(self.settings.step_delay)

        if stop_reason == "max_steps" and self.state.stopped:
            stop_reason = "stopped"
        return self._finish(task, final, stop_reason)

    async def _decide(self):
        try:
            output = await self.orchestrator.generate_decision(self.conversation.get_messages())
        except ActionDecodingError as e:
            logger.error(f"Could not decode model output: {e}")
            return None, f"Agent failed to produce a valid output: {e}"
        return output, None

    async def _execute_actions(self, output: AgentOutput, screen) -> List[ActionResult]:
        actions = output.action
        limit = self.settings.max_actions_per_step
        if len(actions) > limit:
            logger.warning(f"Model returned {len(actions)} actions, executing only the first {limit}")
            actions = actions[:limit]

        results: List[ActionResult] = []
        for action in actions:
            result = await self.executor.execute(action, screen)
            results.append(result)
            name = spec_for(action).name
            self.log.act(f"Action '{name}' executed. Result: {result.long_term_memory or result.error or 'OK'}")
            if result.is_done:
                break
            if result.error is not None:
                self.log.warning("Action failed. Stopping current step's execution.")
                break
        return results

    def _record(self, step_info: AgentStepInfo, screen, output: Optional[AgentOutput],
                results: List[ActionResult], started: float, error: Optional[str] = None):
        metadata = StepMetadata(step_info.step_number, started, time.time())
        self.history.add_item(AgentHistory(model_output=output, result=results, state=screen, metadata=metadata))
        if self.recorder:
            self.recorder.record(step_info.step_number, screen, output, results, metadata, error)

    def _finish(self, task: str, final: Optional[ActionResult], stop_reason: str) -> AgentRunResult:
        success = bool(final is not None and final.success)
        self.phase = LoopPhase.DONE if success else LoopPhase.FAILED
        if stop_reason == "done":
            self.log.success(f"Agent finished the task. Success: {success}")
        elif stop_reason == "max_steps":
            self.log.warning("Agent reached max steps. Stopping.")
        else:
            self.log.phase(f"Agent run finished ({stop_reason}).")

        result = AgentRunResult(
            success=success,
            steps=len(self.history.history),
            final_text=final.long_term_memory if final else None,
            attachments=list(final.attachments or []) if final else [],
            history=self.history,
            metadata={
                "stop_reason": stop_reason,
                "duration_seconds": self.history.total_duration_seconds,
                "last_llm_failure": self.orchestrator.last_failure_reason,
            },
        )
        if self.recorder:
            self.recorder.finalize(result)
        if self.memory_extractor is not None:
            transcript = self.conversation.get_agent_history_description()
            task_handle = spawn_background(self.memory_extractor.extract_and_store(task, transcript),
                                           name="memory-extraction")
            self._background.add(task_handle)
            task_handle.add_done_callback(self._background.discard)
        return result

    async def wait_for_background(self):
        """Waits for spawned background work such as memory extraction."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)


def create_agent(settings: AgentSettings, eyes: IEyes, finger: IFinger, apps: IAppCatalog,
                 user: IUserChannel, intents: Optional[IntentRegistry] = None,
                 orchestrator: Optional[LLMOrchestrator] = None,
                 memory_extractor: Optional[IMemoryExtractor] = None) -> Agent:
    """Wires the default components for one session."""
    intents = intents or IntentRegistry.default()
    sandbox = FileSandbox(settings.workspace_dir)
    conversation = ConversationState("", sandbox, settings, intents)
    executor = ActionExecutor(finger, sandbox, user, apps, intents,
                              wait_seconds=settings.wait_seconds, settle_delay=settings.settle_delay)
    recorder = StepRecorder(settings.record_dir) if settings.record_dir else None
    return Agent(
        settings=settings,
        conversation=conversation,
        perception=Perception(eyes),
        orchestrator=orchestrator or LLMOrchestrator(settings),
        executor=executor,
        recorder=recorder,
        memory_extractor=memory_extractor,
    )
