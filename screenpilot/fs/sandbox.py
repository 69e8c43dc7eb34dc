import asyncio
import logging
import os
import re
import time

from ..interfaces import IFileSandbox

logger = logging.getLogger("agent.fs")

FILENAME_PATTERN = re.compile(r"[a-zA-Z0-9_-]+\.(md|txt)")
TODO_FILE = "todo.md"
RESULTS_FILE = "results.md"
ARCHIVE_PREFIX = "todo_ARCHIVED_"


def is_valid_filename(file_name: str) -> bool:
    """Only plain alphanumeric names (plus _ and -) with a .md or .txt extension are allowed."""
    return bool(FILENAME_PATTERN.fullmatch(file_name or ""))


class FileSandbox(IFileSandbox):
    """
    Private working directory for one agent session.
    A non-empty todo.md from a previous session is archived, a fresh todo.md is
    created, and results.md is kept across sessions.
    """

    def __init__(self, workspace_dir: str = "agent_workspace"):
        self.workspace_dir = os.path.abspath(workspace_dir)
        if os.path.isdir(self.workspace_dir):
            logger.warning(f"Workspace directory '{self.workspace_dir}' already exists. Reusing it.")
        else:
            os.makedirs(self.workspace_dir, exist_ok=True)
            logger.info(f"Created new workspace directory at: {self.workspace_dir}")

        self.todo_path = os.path.join(self.workspace_dir, TODO_FILE)
        self.results_path = os.path.join(self.workspace_dir, RESULTS_FILE)

        self._archive_old_todo()
        with open(self.todo_path, "w", encoding="utf-8"):
            pass
        if not os.path.exists(self.results_path):
            with open(self.results_path, "w", encoding="utf-8"):
                pass

    def _archive_old_todo(self):
        if os.path.exists(self.todo_path) and os.path.getsize(self.todo_path) > 0:
            archive_name = f"{ARCHIVE_PREFIX}{int(time.time() * 1000)}.md"
            try:
                os.replace(self.todo_path, os.path.join(self.workspace_dir, archive_name))
                logger.info(f"Archived old todo.md to {archive_name}")
            except OSError as e:
                logger.warning(f"Failed to archive old todo.md: {e}")

    def _path(self, file_name: str) -> str:
        return os.path.join(self.workspace_dir, file_name)

    async def read_file(self, file_name: str) -> str:
        if not is_valid_filename(file_name):
            return "Error: Invalid filename. Only alphanumeric .md or .txt files are allowed."
        path = self._path(file_name)
        if not os.path.exists(path):
            return f"Error: File '{file_name}' not found."

        def _read():
            with open(path, "r", encoding="utf-8") as f:
                return f.read()

        try:
            return await asyncio.to_thread(_read)
        except OSError as e:
            logger.error(f"Error reading file {file_name}: {e}")
            return f"Error: Could not read file '{file_name}'."

    async def write_file(self, file_name: str, content: str) -> bool:
        return await self._write(file_name, content, "w")

    async def append_file(self, file_name: str, content: str) -> bool:
        if is_valid_filename(file_name) and not os.path.exists(self._path(file_name)):
            logger.warning(f"File '{file_name}' not found for append. A new file will be created.")
        return await self._write(file_name, content, "a")

    async def _write(self, file_name: str, content: str, mode: str) -> bool:
        if not is_valid_filename(file_name):
            logger.error(f"Invalid filename for write: {file_name}")
            return False

        def _do_write():
            with open(self._path(file_name), mode, encoding="utf-8") as f:
                f.write(content)

        try:
            await asyncio.to_thread(_do_write)
            return True
        except OSError as e:
            logger.error(f"Error writing to file {file_name}: {e}")
            return False

    def describe(self) -> str:
        try:
            names = sorted(
                name for name in os.listdir(self.workspace_dir)
                if os.path.isfile(self._path(name)) and not name.startswith(ARCHIVE_PREFIX)
            )
        except OSError as e:
            logger.error(f"Error describing file system: {e}")
            return "Error: Could not describe file system."

        if not names:
            return "The file system is empty."

        lines = []
        for name in names:
            try:
                with open(self._path(name), "r", encoding="utf-8") as f:
                    count = len(f.read().splitlines())
                lines.append(f"- {name} - {count} lines")
            except (OSError, UnicodeDecodeError):
                lines.append(f"- {name} - [error reading file]")
        return "\n".join(lines)

    def todo_contents(self) -> str:
        try:
            with open(self.todo_path, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            logger.error(f"Could not read todo.md: {e}")
            return ""
