import asyncio
import logging
from typing import Dict, Optional
from urllib.parse import quote_plus

from ..domain import ActionResult, IntentDescriptor, ScreenAnalysis
from ..fs.sandbox import is_valid_filename
from ..interfaces import IAppCatalog, IFileSandbox, IFinger, IUserChannel
from ..perception.renderer import center_of, describe_element
from ..config import Delays
from .intents import ACTION_VIEW, IntentRegistry
from .schema import (
    Action, AppendFile, Ask, Back, Done, Home, InputText, LaunchIntent, LongPressElement, OpenApp, ReadFile,
    ScrollDown, ScrollUp, SearchGoogle, Speak, SwitchApp, TapElement, TapElementInputTextPressEnter, Wait,
    WriteFile, get_all_specs, spec_for,
)

logger = logging.getLogger("agent.actions")

APP_HINT = "Maybe try using different name or use app drawer by scrolling up."
INVALID_FILENAME_ERROR = "Error: Invalid filename. Only alphanumeric .md or .txt files are allowed."
BROWSER_PACKAGE = "com.android.chrome"


def resolve_package(app_name: str, apps: Dict[str, str]) -> Optional[str]:
    """Exact case-insensitive label match first, then substring match."""
    wanted = app_name.strip().lower()
    if not wanted:
        return None
    for label, package in apps.items():
        if label.lower() == wanted:
            return package
    for label, package in apps.items():
        if wanted in label.lower():
            return package
    return None


class ActionExecutor:
    """
    Executes typed actions against the device and sandbox collaborators.

    Every action kind has an ``_execute_<wire_name>`` handler; the module
    refuses to import if one is missing. Handlers return an ActionResult and
    never raise: any unexpected exception is logged and turned into an error
    result.
    """

    def __init__(self, finger: IFinger, file_system: IFileSandbox, user: IUserChannel,
                 apps: IAppCatalog, intents: Optional[IntentRegistry] = None,
                 wait_seconds: float = Delays.WAIT, settle_delay: float = Delays.SETTLE):
        self.finger = finger
        self.file_system = file_system
        self.user = user
        self.apps = apps
        self.intents = intents or IntentRegistry.default()
        self.wait_seconds = wait_seconds
        self.settle_delay = settle_delay

    async def execute(self, action: Action, analysis: ScreenAnalysis) -> ActionResult:
        name = spec_for(action).name
        handler = getattr(self, f"_execute_{name}")
        logger.info(f"Executing {name}")
        try:
            return await handler(action, analysis)
        except Exception as e:
            logger.error(f"Error executing action {action}: {e}")
            return ActionResult(error=f"Action '{name}' failed: {type(e).__name__}: {e}")

    # Element actions

    async def _execute_tap_element(self, action: TapElement, analysis: ScreenAnalysis) -> ActionResult:
        node, error = self._resolve(action.element_id, analysis)
        if error:
            return error
        x, y = center_of(node)
        await self.finger.tap(x, y)
        return ActionResult(long_term_memory=f"Tapped element {describe_element(node)}")

    async def _execute_long_press_element(self, action: LongPressElement, analysis: ScreenAnalysis) -> ActionResult:
        node, error = self._resolve(action.element_id, analysis)
        if error:
            return error
        x, y = center_of(node)
        await self.finger.long_press(x, y)
        return ActionResult(long_term_memory=f"Long-pressed element {describe_element(node)}")

    async def _execute_tap_element_input_text_and_enter(self, action: TapElementInputTextPressEnter,
                                                        analysis: ScreenAnalysis) -> ActionResult:
        node, error = self._resolve(action.index, analysis)
        if error:
            return error
        x, y = center_of(node)
        await self.finger.tap(x, y)
        # let focus land on the field before typing
        await asyncio.sleep(self.settle_delay)
        await self.finger.type(action.text)
        return ActionResult(long_term_memory=f"Typed {action.text} into element {describe_element(node)}.")

    def _resolve(self, index: int, analysis: ScreenAnalysis):
        node = analysis.element(index)
        if node is None:
            return None, ActionResult(error=f"Element with ID {index} not found in the current screen state.")
        if center_of(node) is None:
            return None, ActionResult(error=f"Element with ID {index} has no bounds information.")
        return node, None

    # Device actions

    async def _execute_type(self, action: InputText, analysis: ScreenAnalysis) -> ActionResult:
        await self.finger.type(action.text)
        return ActionResult(long_term_memory=f"Input text {action.text}.")

    async def _execute_swipe_up(self, action: ScrollUp, analysis: ScreenAnalysis) -> ActionResult:
        await self.finger.scroll_up(action.amount)
        return ActionResult(long_term_memory=f"Scrolled up by {action.amount} pixels.")

    async def _execute_swipe_down(self, action: ScrollDown, analysis: ScreenAnalysis) -> ActionResult:
        await self.finger.scroll_down(action.amount)
        return ActionResult(long_term_memory=f"Scrolled down by {action.amount} pixels.")

    async def _execute_back(self, action: Back, analysis: ScreenAnalysis) -> ActionResult:
        await self.finger.back()
        return ActionResult(long_term_memory="Pressed the back button.")

    async def _execute_home(self, action: Home, analysis: ScreenAnalysis) -> ActionResult:
        await self.finger.home()
        return ActionResult(long_term_memory="Pressed the home button.")

    async def _execute_switch_app(self, action: SwitchApp, analysis: ScreenAnalysis) -> ActionResult:
        await self.finger.switch_app()
        return ActionResult(long_term_memory="Opened the app switcher.")

    async def _execute_wait(self, action: Wait, analysis: ScreenAnalysis) -> ActionResult:
        await asyncio.sleep(self.wait_seconds)
        return ActionResult(long_term_memory=f"Waited for {self.wait_seconds:g} seconds.")

    async def _execute_open_app(self, action: OpenApp, analysis: ScreenAnalysis) -> ActionResult:
        package = resolve_package(action.app_name, await self.apps.installed_apps())
        if package is None:
            return ActionResult(error=f"App '{action.app_name}' not found. {APP_HINT}")
        if not await self.finger.open_app(package):
            return ActionResult(error=f"Failed to open app '{action.app_name}' (package: {package}). {APP_HINT}")
        return ActionResult(long_term_memory=f"Opened app '{action.app_name}'.")

    async def _execute_search_google(self, action: SearchGoogle, analysis: ScreenAnalysis) -> ActionResult:
        url = f"https://www.google.com/search?q={quote_plus(action.query)}"
        if await self.finger.launch_external_intent(IntentDescriptor(action=ACTION_VIEW, data=url)):
            return ActionResult(long_term_memory=f"Searched Google for '{action.query}'.")
        if await self.finger.open_app(BROWSER_PACKAGE):
            return ActionResult(long_term_memory="Opened Chrome to search Google.")
        return ActionResult(error=f"Could not open a browser to search Google for '{action.query}'.")

    async def _execute_launch_intent(self, action: LaunchIntent, analysis: ScreenAnalysis) -> ActionResult:
        name = action.intent_name
        params = dict(action.parameters)
        app_intent = self.intents.find_by_name(name)
        if app_intent is None:
            return ActionResult(error=f"Intent '{name}' not found. Check intents catalog for valid names.")
        descriptor = app_intent.build_intent(params)
        if descriptor is None:
            return ActionResult(error=f"Intent '{name}' missing or invalid parameters: {params}")
        if not await self.finger.launch_external_intent(descriptor):
            return ActionResult(error=f"Failed to launch intent '{name}'.")
        return ActionResult(long_term_memory=f"Launched intent '{name}' with params {params}")

    # User channel

    async def _execute_speak(self, action: Speak, analysis: ScreenAnalysis) -> ActionResult:
        await self.user.speak(action.message)
        return ActionResult(long_term_memory=f"Spoke the message: \"{action.message[:50]}...\"")

    async def _execute_ask(self, action: Ask, analysis: ScreenAnalysis) -> ActionResult:
        response = await self.user.ask(action.question)
        return ActionResult(
            long_term_memory=f"Asked user: '{action.question}'. User responded: '{response}'.",
            extracted_content=response,
            include_extracted_content_only_once=True,
        )

    # Files

    async def _execute_read_file(self, action: ReadFile, analysis: ScreenAnalysis) -> ActionResult:
        if not is_valid_filename(action.file_name):
            return ActionResult(error=INVALID_FILENAME_ERROR)
        content = await self.file_system.read_file(action.file_name)
        if content.startswith("Error:"):
            return ActionResult(error=content)
        return ActionResult(
            long_term_memory=f"Read content from '{action.file_name}'.",
            extracted_content=content,
            include_extracted_content_only_once=True,
        )

    async def _execute_write_file(self, action: WriteFile, analysis: ScreenAnalysis) -> ActionResult:
        if not is_valid_filename(action.file_name):
            return ActionResult(error=INVALID_FILENAME_ERROR)
        if await self.file_system.write_file(action.file_name, action.content):
            return ActionResult(long_term_memory=f"Wrote content to '{action.file_name}'.")
        return ActionResult(error=f"Failed to write to file '{action.file_name}'.")

    async def _execute_append_file(self, action: AppendFile, analysis: ScreenAnalysis) -> ActionResult:
        if not is_valid_filename(action.file_name):
            return ActionResult(error=INVALID_FILENAME_ERROR)
        if await self.file_system.append_file(action.file_name, action.content):
            return ActionResult(long_term_memory=f"Appended content to '{action.file_name}'.")
        return ActionResult(error=f"Failed to append to file '{action.file_name}'.")

    # Terminal

    async def _execute_done(self, action: Done, analysis: ScreenAnalysis) -> ActionResult:
        return ActionResult(
            is_done=True,
            success=action.success,
            long_term_memory=f"Task finished: {action.text}",
            attachments=list(action.files_to_display) if action.files_to_display else None,
        )


_unhandled = [spec.name for spec in get_all_specs() if not hasattr(ActionExecutor, f"_execute_{spec.name}")]
if _unhandled:
    raise TypeError(f"ActionExecutor has no handler for actions: {', '.join(_unhandled)}")
