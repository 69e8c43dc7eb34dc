from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .domain import IntentDescriptor, RawScreenData
from .memory.messages import Message


class IEyes(ABC):
    """Interface for the screen observation collaborator."""

    @abstractmethod
    async def get_raw_screen_data(self) -> Optional[RawScreenData]:
        """Returns the current UI dump, or None when it cannot be captured."""
        pass

    @abstractmethod
    async def get_keyboard_visible(self) -> bool:
        pass

    @abstractmethod
    async def get_foreground_activity(self) -> str:
        pass


class IFinger(ABC):
    """Interface for the input-injection collaborator."""

    @abstractmethod
    async def tap(self, x: int, y: int):
        pass

    @abstractmethod
    async def long_press(self, x: int, y: int):
        pass

    @abstractmethod
    async def type(self, text: str):
        """Types text into the focused field, followed by enter."""
        pass

    @abstractmethod
    async def scroll_up(self, amount: int):
        pass

    @abstractmethod
    async def scroll_down(self, amount: int):
        pass

    @abstractmethod
    async def back(self):
        pass

    @abstractmethod
    async def home(self):
        pass

    @abstractmethod
    async def switch_app(self):
        pass

    @abstractmethod
    async def open_app(self, package_name: str) -> bool:
        pass

    @abstractmethod
    async def launch_external_intent(self, intent: IntentDescriptor) -> bool:
        pass


class IAppCatalog(ABC):
    """Lists launchable apps."""

    @abstractmethod
    async def installed_apps(self) -> Dict[str, str]:
        """Returns a mapping of human-readable app label to package name."""
        pass


class IUserChannel(ABC):
    """Talks to the human operator."""

    @abstractmethod
    async def speak(self, message: str):
        pass

    @abstractmethod
    async def ask(self, question: str) -> str:
        """Blocks until the user answers."""
        pass


class IFileSandbox(ABC):
    """Interface for the sandboxed file collaborator."""

    @abstractmethod
    async def read_file(self, file_name: str) -> str:
        """Returns the file content, or a string starting with "Error:"."""
        pass

    @abstractmethod
    async def write_file(self, file_name: str, content: str) -> bool:
        pass

    @abstractmethod
    async def append_file(self, file_name: str, content: str) -> bool:
        pass

    @abstractmethod
    def describe(self) -> str:
        """Short listing of the workspace for the prompt."""
        pass

    @abstractmethod
    def todo_contents(self) -> str:
        pass


class ILLMProvider(ABC):
    """Interface for a single model transport."""

    @abstractmethod
    async def generate(self, messages: List[Message]) -> str:
        """
        Sends the conversation and returns the raw reply text.
        Raises LLMError subclasses on transport failure or blocked content.
        """
        pass


class IMemoryExtractor(ABC):
    """Distills durable facts from a finished session."""

    @abstractmethod
    async def extract_and_store(self, task: str, transcript: str):
        pass


class ITriggerScheduler(ABC):
    """Reschedules periodic triggers after a task is handed off."""

    @abstractmethod
    def reschedule(self, trigger_id: str):
        """May raise PermissionError when the platform refuses."""
        pass
