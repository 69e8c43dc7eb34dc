"""
Reference device collaborators backed by the ``adb`` command line tool.

AdbDevice implements observation, input injection and the app catalog for a
single attached Android device. Scroll extents are not observable through
uiautomator and are always reported as 0.
"""
import asyncio
import logging
import re
from typing import Dict, List, Optional, Tuple

from ..domain import IntentDescriptor, RawScreenData
from ..errors import DeviceError
from ..interfaces import IAppCatalog, IEyes, IFinger, IUserChannel

logger = logging.getLogger("agent.device")

DUMP_PATH = "/sdcard/window_dump.xml"
KEYCODE_HOME = 3
KEYCODE_BACK = 4
KEYCODE_ENTER = 66
KEYCODE_APP_SWITCH = 187
LONG_PRESS_MS = 1000
SWIPE_MS = 400

_SIZE_PATTERN = re.compile(r"(\d+)x(\d+)")
_RESUMED_PATTERN = re.compile(r"u0\s+(\S+)")
_TEXT_ESCAPES = str.maketrans({
    "\\": "\\\\", " ": "%s", "'": "\\'", '"': '\\"', "&": "\\&", "<": "\\<", ">": "\\>",
    "|": "\\|", ";": "\\;", "(": "\\(", ")": "\\)", "$": "\\$", "`": "\\`",
})


def escape_input_text(text: str) -> str:
    """Escapes text for ``adb shell input text``; spaces become %s."""
    return text.translate(_TEXT_ESCAPES)


def label_for_package(package: str) -> str:
    """Best-effort human label: the last package segment, e.g. com.google.android.youtube -> Youtube."""
    return package.rsplit(".", 1)[-1].replace("_", " ").title()


class AdbDevice(IEyes, IFinger, IAppCatalog):
    """Talks to one device through ``adb [-s serial]``."""

    def __init__(self, serial: Optional[str] = None, command_timeout: float = 20.0):
        self.serial = serial
        self.command_timeout = command_timeout
        self._screen_size: Optional[Tuple[int, int]] = None

    async def _adb(self, *args: str, timeout: Optional[float] = None) -> str:
        cmd = ["adb"] + (["-s", self.serial] if self.serial else []) + list(args)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise DeviceError("adb executable not found on PATH") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout or self.command_timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise DeviceError(f"adb command timed out: {' '.join(args)}")

        if proc.returncode != 0:
            raise DeviceError(f"adb {' '.join(args)} failed ({proc.returncode}): "
                              f"{stderr.decode('utf-8', errors='replace').strip()[:200]}")
        return stdout.decode("utf-8", errors="replace")

    async def _shell(self, command: str, timeout: Optional[float] = None) -> str:
        return await self._adb("shell", command, timeout=timeout)

    async def screen_size(self) -> Tuple[int, int]:
        if self._screen_size is None:
            output = await self._shell("wm size")
            # "Override size" wins over "Physical size" when present
            matches = _SIZE_PATTERN.findall(output)
            if matches:
                width, height = matches[-1]
                self._screen_size = (int(width), int(height))
            else:
                logger.warning(f"Could not parse screen size from: {output.strip()}")
                return 0, 0
        return self._screen_size

    # Eyes

    async def get_raw_screen_data(self) -> Optional[RawScreenData]:
        try:
            await self._shell(f"uiautomator dump {DUMP_PATH}")
            xml = await self._adb("exec-out", "cat", DUMP_PATH)
            width, height = await self.screen_size()
        except DeviceError as e:
            logger.warning(f"UI dump failed: {e}")
            return None
        if not xml.strip():
            return None
        return RawScreenData(xml=xml, screen_width=width, screen_height=height)

    async def get_keyboard_visible(self) -> bool:
        output = await self._shell("dumpsys input_method")
        return "mInputShown=true" in output

    async def get_foreground_activity(self) -> str:
        output = await self._shell("dumpsys activity activities")
        for line in output.splitlines():
            if "mResumedActivity" in line or "topResumedActivity" in line:
                match = _RESUMED_PATTERN.search(line)
                if match:
                    return match.group(1).rstrip("}")
        return "unknown"

    # Finger

    async def tap(self, x: int, y: int):
        await self._shell(f"input tap {x} {y}")

    async def long_press(self, x: int, y: int):
        await self._shell(f"input swipe {x} {y} {x} {y} {LONG_PRESS_MS}")

    async def type(self, text: str):
        await self._shell(f"input text '{escape_input_text(text)}'")
        await self._shell(f"input keyevent {KEYCODE_ENTER}")

    async def _swipe_vertical(self, start_offset: int, end_offset: int):
        width, height = await self.screen_size()
        cx, cy = width // 2, height // 2
        await self._shell(f"input swipe {cx} {cy + start_offset} {cx} {cy + end_offset} {SWIPE_MS}")

    async def scroll_down(self, amount: int):
        await self._swipe_vertical(amount // 2, -(amount // 2))

    async def scroll_up(self, amount: int):
        await self._swipe_vertical(-(amount // 2), amount // 2)

    async def back(self):
        await self._shell(f"input keyevent {KEYCODE_BACK}")

    async def home(self):
        await self._shell(f"input keyevent {KEYCODE_HOME}")

    async def switch_app(self):
        await self._shell(f"input keyevent {KEYCODE_APP_SWITCH}")

    async def open_app(self, package_name: str) -> bool:
        try:
            output = await self._shell(f"monkey -p {package_name} -c android.intent.category.LAUNCHER 1")
        except DeviceError as e:
            logger.error(f"Failed to open {package_name}: {e}")
            return False
        return "No activities found" not in output and "Error" not in output

    async def launch_external_intent(self, intent: IntentDescriptor) -> bool:
        parts: List[str] = ["am", "start", "-a", intent.action]
        if intent.data:
            parts += ["-d", f"'{escape_shell_quote(intent.data)}'"]
        if intent.mime_type:
            parts += ["-t", intent.mime_type]
        for key, value in intent.extras.items():
            parts += ["--es", key, f"'{escape_shell_quote(value)}'"]
        try:
            output = await self._shell(" ".join(parts))
        except DeviceError as e:
            logger.error(f"Failed to launch intent {intent.action}: {e}")
            return False
        return "Error" not in output

    # App catalog

    async def installed_apps(self) -> Dict[str, str]:
        output = await self._shell("pm list packages -3")
        system = await self._shell("pm list packages -s")
        apps: Dict[str, str] = {}
        for line in (output + "\n" + system).splitlines():
            line = line.strip()
            if not line.startswith("package:"):
                continue
            package = line[len("package:"):]
            apps.setdefault(label_for_package(package), package)
            apps.setdefault(package, package)
        return apps


def escape_shell_quote(value: str) -> str:
    return value.replace("'", "'\\''")


class ConsoleUserChannel(IUserChannel):
    """Speaks and asks on the terminal."""

    async def speak(self, message: str):
        print(f"🗣️  {message}", flush=True)

    async def ask(self, question: str) -> str:
        answer = await asyncio.to_thread(input, f"❓ {question}\n> ")
        return answer.strip()
