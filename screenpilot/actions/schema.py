"""
Action protocol.

Every command the agent can execute is a small frozen dataclass. The model
emits each action as ``{"<wire_name>": {"<param>": value, ...}}``; the
registry below is the single source of truth for decoding those objects and
for describing the available actions in the system prompt.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type

from ..errors import ActionDecodingError


class Action:
    """Base class of all executable actions."""

    @property
    def wire_name(self) -> str:
        return spec_for(self).name


@dataclass(frozen=True)
class TapElement(Action):
    element_id: int


@dataclass(frozen=True)
class LongPressElement(Action):
    element_id: int


@dataclass(frozen=True)
class InputText(Action):
    text: str


@dataclass(frozen=True)
class TapElementInputTextPressEnter(Action):
    index: int
    text: str


@dataclass(frozen=True)
class ScrollUp(Action):
    amount: int


@dataclass(frozen=True)
class ScrollDown(Action):
    amount: int


@dataclass(frozen=True)
class SwitchApp(Action):
    pass


@dataclass(frozen=True)
class Back(Action):
    pass


@dataclass(frozen=True)
class Home(Action):
    pass


@dataclass(frozen=True)
class Wait(Action):
    pass


@dataclass(frozen=True)
class Speak(Action):
    message: str


@dataclass(frozen=True)
class Ask(Action):
    question: str


@dataclass(frozen=True)
class OpenApp(Action):
    app_name: str


@dataclass(frozen=True)
class SearchGoogle(Action):
    query: str


@dataclass(frozen=True)
class ReadFile(Action):
    file_name: str


@dataclass(frozen=True)
class WriteFile(Action):
    file_name: str
    content: str


@dataclass(frozen=True)
class AppendFile(Action):
    file_name: str
    content: str


@dataclass(frozen=True)
class LaunchIntent(Action):
    intent_name: str
    parameters: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Done(Action):
    success: bool
    text: str
    files_to_display: Optional[Tuple[str, ...]] = None


class ParamType(Enum):
    INT = "int"
    STRING = "string"
    BOOL = "boolean"
    STRING_LIST = "list[string]"
    STRING_MAP = "map[string,string]"


@dataclass(frozen=True)
class ParamSpec:
    name: str
    type: ParamType
    description: str
    required: bool = True


@dataclass(frozen=True)
class ActionSpec:
    name: str
    description: str
    action_type: Type[Action]
    params: Tuple[ParamSpec, ...] = ()
    build: Optional[Callable[[Dict[str, Any]], Action]] = None

    def construct(self, args: Dict[str, Any]) -> Action:
        if self.build is not None:
            return self.build(args)
        return self.action_type(**args)


def _build_done(args: Dict[str, Any]) -> Action:
    files = args.get("files_to_display")
    return Done(
        success=args["success"],
        text=args["text"],
        files_to_display=tuple(files) if files is not None else None,
    )


def _build_launch_intent(args: Dict[str, Any]) -> Action:
    return LaunchIntent(intent_name=args["intent_name"], parameters=dict(args.get("parameters") or {}))


ALL_SPECS: Tuple[ActionSpec, ...] = (
    ActionSpec(
        "tap_element", "Tap the element with the specified numeric ID.", TapElement,
        (ParamSpec("element_id", ParamType.INT, "The numeric ID of the element."),),
    ),
    ActionSpec("switch_app", "Show the App switcher.", SwitchApp),
    ActionSpec("back", "Go back to the previous screen.", Back),
    ActionSpec("home", "Go to the device's home screen.", Home),
    ActionSpec("wait", "Wait for a few seconds for loading.", Wait),
    ActionSpec(
        "speak", "Speak the 'message' to the user.", Speak,
        (ParamSpec("message", ParamType.STRING, "The message to speak."),),
    ),
    ActionSpec(
        "ask", "Ask the 'question' to the user and await a response.", Ask,
        (ParamSpec("question", ParamType.STRING, "The question to ask."),),
    ),
    ActionSpec(
        "open_app", "Open the app named 'app_name'.", OpenApp,
        (ParamSpec("app_name", ParamType.STRING, "The name of the app."),),
    ),
    ActionSpec(
        "swipe_down", "Swipe down by the specified amount of pixels.", ScrollDown,
        (ParamSpec("amount", ParamType.INT, "Amount of pixels to swipe down."),),
    ),
    ActionSpec(
        "long_press_element",
        "Press and hold the element with the specified numeric ID. Useful for context menus, selecting text, etc.",
        LongPressElement,
        (ParamSpec("element_id", ParamType.INT, "The numeric ID of the element to long press."),),
    ),
    ActionSpec(
        "swipe_up", "Swipe up by the specified amount of pixels.", ScrollUp,
        (ParamSpec("amount", ParamType.INT, "Amount of pixels to swipe up."),),
    ),
    ActionSpec(
        "search_google", "Search Google with the specified query.", SearchGoogle,
        (ParamSpec("query", ParamType.STRING, "The search query to perform on Google."),),
    ),
    ActionSpec(
        "tap_element_input_text_and_enter",
        "Taps an element, inputs text, and presses enter. Useful for search bars.",
        TapElementInputTextPressEnter,
        (
            ParamSpec("index", ParamType.INT, "The numerical index of the input element."),
            ParamSpec("text", ParamType.STRING, "The text to be typed into the element."),
        ),
    ),
    ActionSpec(
        "done", "Completes the current task.", Done,
        (
            ParamSpec("success", ParamType.BOOL, "True if the task was completed successfully, False otherwise."),
            ParamSpec("text", ParamType.STRING, "A summary of the results or a final message for the user."),
            ParamSpec("files_to_display", ParamType.STRING_LIST,
                      "A list of filenames (e.g., ['results.md']) to show the user.", required=False),
        ),
        build=_build_done,
    ),
    ActionSpec(
        "write_file", "Write content to a file, overwriting existing content.", WriteFile,
        (
            ParamSpec("file_name", ParamType.STRING, "The name of the file (e.g., 'notes.txt')."),
            ParamSpec("content", ParamType.STRING, "The content to write to the file."),
        ),
    ),
    ActionSpec(
        "append_file", "Append content to the end of a file.", AppendFile,
        (
            ParamSpec("file_name", ParamType.STRING, "The name of the file to append to."),
            ParamSpec("content", ParamType.STRING, "The content to append."),
        ),
    ),
    ActionSpec(
        "read_file", "Read the entire content of a file.", ReadFile,
        (ParamSpec("file_name", ParamType.STRING, "The name of the file to read."),),
    ),
    ActionSpec(
        "type", "Type text into a focused input field.", InputText,
        (ParamSpec("text", ParamType.STRING, "The text to type."),),
    ),
    ActionSpec(
        "launch_intent",
        "Launch a named system intent with parameters. Use this for OS-level actions like Dial, Share, etc.",
        LaunchIntent,
        (
            ParamSpec("intent_name", ParamType.STRING, "The name of the intent to launch (see intents catalog)."),
            ParamSpec("parameters", ParamType.STRING_MAP,
                      "A map of parameter names to their string values as required by the intent.",
                      required=False),
        ),
        build=_build_launch_intent,
    ),
)

SPECS_BY_NAME: Dict[str, ActionSpec] = {spec.name: spec for spec in ALL_SPECS}
SPECS_BY_TYPE: Dict[Type[Action], ActionSpec] = {spec.action_type: spec for spec in ALL_SPECS}


def get_all_specs() -> Tuple[ActionSpec, ...]:
    return ALL_SPECS


def spec_for(action: Action) -> ActionSpec:
    return SPECS_BY_TYPE[type(action)]


def _is_primitive(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool))


def _primitive_content(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def coerce_param(action_name: str, param: ParamSpec, value: Any) -> Any:
    """Converts a raw JSON value to the declared parameter type or raises ActionDecodingError."""
    def mismatch() -> ActionDecodingError:
        return ActionDecodingError(
            f"Parameter '{param.name}' of action '{action_name}' expects {param.type.value}, "
            f"got {type(value).__name__}: {value!r}",
            action_name=action_name,
        )

    if param.type is ParamType.INT:
        if isinstance(value, bool):
            raise mismatch()
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                raise mismatch() from None
        raise mismatch()

    if param.type is ParamType.STRING:
        if not _is_primitive(value):
            raise mismatch()
        return _primitive_content(value)

    if param.type is ParamType.BOOL:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise mismatch()

    if param.type is ParamType.STRING_LIST:
        if not isinstance(value, list) or not all(_is_primitive(v) for v in value):
            raise mismatch()
        return [_primitive_content(v) for v in value]

    if param.type is ParamType.STRING_MAP:
        if not isinstance(value, dict) or not all(_is_primitive(v) for v in value.values()):
            raise mismatch()
        return {str(k): _primitive_content(v) for k, v in value.items()}

    raise ActionDecodingError(
        f"Unsupported parameter type declared for '{action_name}.{param.name}': {param.type}",
        action_name=action_name,
    )


def decode_action(data: Any) -> Action:
    """
    Decodes one ``{"wire_name": {params}}`` object into a typed Action.

    Raises:
        ActionDecodingError: unknown action name, malformed envelope, missing
            required parameter or parameter type mismatch.
    """
    if not isinstance(data, dict) or len(data) != 1:
        raise ActionDecodingError(f"Action must be an object with exactly one key, got: {data!r}")

    action_name, params = next(iter(data.items()))
    spec = SPECS_BY_NAME.get(action_name)
    if spec is None:
        raise ActionDecodingError(f"Unknown action received from LLM: {action_name}", action_name=action_name)

    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise ActionDecodingError(
            f"Parameters of action '{action_name}' must be an object, got {type(params).__name__}",
            action_name=action_name,
        )

    args: Dict[str, Any] = {}
    for param in spec.params:
        value = params.get(param.name)
        if value is None:
            if param.required:
                raise ActionDecodingError(
                    f"Missing required parameter '{param.name}' for action '{action_name}'",
                    action_name=action_name,
                )
            continue
        args[param.name] = coerce_param(action_name, param, value)

    return spec.construct(args)


def decode_actions(items: Any) -> List[Action]:
    if not isinstance(items, list):
        raise ActionDecodingError(f"'action' must be a list, got {type(items).__name__}")
    return [decode_action(item) for item in items]


def encode_action(action: Action) -> Dict[str, Dict[str, Any]]:
    """Inverse of decode_action, used for logging and step records."""
    spec = spec_for(action)
    params: Dict[str, Any] = {}
    for param in spec.params:
        value = getattr(action, param.name)
        if value is None:
            continue
        if param.type is ParamType.STRING_LIST:
            value = list(value)
        elif param.type is ParamType.STRING_MAP:
            value = dict(value)
        params[param.name] = value
    return {spec.name: params}


def describe_actions() -> str:
    """Renders the registry for the system prompt."""
    blocks = []
    for spec in ALL_SPECS:
        lines = ["<action>", f"  <name>{spec.name}</name>", f"  <description>{spec.description}</description>"]
        if spec.params:
            lines.append("  <parameters>")
            for param in spec.params:
                lines.extend([
                    "    <param>",
                    f"      <name>{param.name}</name>",
                    f"      <type>{param.type.value}</type>",
                    f"      <required>{str(param.required).lower()}</required>",
                    f"      <description>{param.description}</description>",
                    "    </param>",
                ])
            lines.append("  </parameters>")
        lines.append("</action>")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
