"""
Named external intents the agent can launch with `launch_intent`.

Each intent validates its own parameters and produces a platform-neutral
IntentDescriptor; returning None means required parameters were missing or
invalid.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from ..domain import IntentDescriptor

logger = logging.getLogger("agent.actions")

ACTION_DIAL = "android.intent.action.DIAL"
ACTION_VIEW = "android.intent.action.VIEW"
ACTION_SEND = "android.intent.action.SEND"
ACTION_SENDTO = "android.intent.action.SENDTO"
EXTRA_TEXT = "android.intent.extra.TEXT"
EXTRA_EMAIL = "android.intent.extra.EMAIL"
EXTRA_SUBJECT = "android.intent.extra.SUBJECT"


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    type: str
    required: bool
    description: str


class AppIntent(ABC):
    """Contract for pluggable intents."""

    name: str = ""

    @abstractmethod
    def description(self) -> str:
        pass

    @abstractmethod
    def parameters_spec(self) -> List[ParameterSpec]:
        pass

    @abstractmethod
    def build_intent(self, params: Mapping[str, str]) -> Optional[IntentDescriptor]:
        pass


def _param(params: Mapping[str, str], name: str) -> str:
    value = params.get(name)
    return str(value).strip() if value is not None else ""


class DialIntent(AppIntent):
    """Opens the dialer with a number prefilled. No call is placed."""

    name = "Dial"

    def description(self) -> str:
        return "Open the phone dialer with the specified phone number prefilled (no call is placed)."

    def parameters_spec(self) -> List[ParameterSpec]:
        return [ParameterSpec("phone_number", "string", True,
                              "The phone number to dial. Digits only or may include + and spaces.")]

    def build_intent(self, params: Mapping[str, str]) -> Optional[IntentDescriptor]:
        raw = _param(params, "phone_number")
        if not raw:
            return None
        return IntentDescriptor(action=ACTION_DIAL, data=f"tel:{raw.replace(' ', '')}")


class ViewUrlIntent(AppIntent):
    name = "ViewUrl"

    def description(self) -> str:
        return "Open a web URL in the default browser."

    def parameters_spec(self) -> List[ParameterSpec]:
        return [ParameterSpec("url", "string", True, "The HTTP/HTTPS URL to open.")]

    def build_intent(self, params: Mapping[str, str]) -> Optional[IntentDescriptor]:
        url = _param(params, "url")
        if not url:
            return None
        return IntentDescriptor(action=ACTION_VIEW, data=url)


class ShareTextIntent(AppIntent):
    name = "ShareText"

    def description(self) -> str:
        return ("Open the system share sheet to send text. Use this when you want to send a text "
                "to someone, it will give access to all the apps here")

    def parameters_spec(self) -> List[ParameterSpec]:
        return [
            ParameterSpec("text", "string", True, "The text to share."),
            ParameterSpec("chooser_title", "string", False, "Optional chooser title shown on the share sheet."),
        ]

    def build_intent(self, params: Mapping[str, str]) -> Optional[IntentDescriptor]:
        text = _param(params, "text")
        if not text:
            return None
        return IntentDescriptor(
            action=ACTION_SEND,
            mime_type="text/plain",
            extras={EXTRA_TEXT: text},
            chooser_title=_param(params, "chooser_title") or "Share via",
        )


class EmailComposeIntent(AppIntent):
    name = "EmailCompose"

    def description(self) -> str:
        return ("Always use this intent when you want to send the email to mail:id. "
                "this intent will use the default email app.")

    def parameters_spec(self) -> List[ParameterSpec]:
        return [
            ParameterSpec("to", "string", False, "Comma-separated email recipients."),
            ParameterSpec("subject", "string", False, "Email subject."),
            ParameterSpec("body", "string", False, "Email body text."),
        ]

    def build_intent(self, params: Mapping[str, str]) -> Optional[IntentDescriptor]:
        to = _param(params, "to")
        extras = {EXTRA_EMAIL: to}
        subject = _param(params, "subject")
        if subject:
            extras[EXTRA_SUBJECT] = subject
        body = _param(params, "body")
        if body:
            extras[EXTRA_TEXT] = body
        return IntentDescriptor(action=ACTION_SENDTO, data=f"mailto:{to}", extras=extras)


class IntentRegistry:
    """Name -> AppIntent lookup. Construct once per process and pass it where needed."""

    def __init__(self, intents: Optional[Iterable[AppIntent]] = None):
        self._intents: Dict[str, AppIntent] = {}
        for intent in intents or ():
            self.register(intent)

    @classmethod
    def default(cls) -> "IntentRegistry":
        return cls([DialIntent(), ViewUrlIntent(), ShareTextIntent(), EmailComposeIntent()])

    def register(self, intent: AppIntent):
        key = intent.name.strip()
        if key in self._intents:
            logger.warning(f"Duplicate intent registration for name: {intent.name}; overriding")
        self._intents[key] = intent

    def list_intents(self) -> List[AppIntent]:
        return list(self._intents.values())

    def find_by_name(self, name: str) -> Optional[AppIntent]:
        if name in self._intents:
            return self._intents[name]
        lowered = name.strip().lower()
        for key, intent in self._intents.items():
            if key.lower() == lowered:
                return intent
        return None

    def describe(self) -> str:
        """Catalog block for the system prompt; empty when nothing is registered."""
        blocks = []
        for intent in self._intents.values():
            lines = ["<intent>", f"  <name>{intent.name}</name>", f"  <description>{intent.description()}</description>"]
            params = intent.parameters_spec()
            if params:
                lines.append("  <parameters>")
                for p in params:
                    lines.extend([
                        "    <param>",
                        f"      <name>{p.name}</name>",
                        f"      <type>{p.type}</type>",
                        f"      <required>{str(p.required).lower()}</required>",
                        f"      <description>{p.description}</description>",
                        "    </param>",
                    ])
                lines.append("  </parameters>")
            lines.append("</intent>")
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)
