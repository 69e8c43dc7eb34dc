import logging
import threading
import time
from typing import Callable, Dict, Optional

from ..config import Limits
from ..errors import TriggerSecurityError
from ..interfaces import ITriggerScheduler

logger = logging.getLogger("agent.triggers")


class TaskDispatcher:
    """
    Single entry point for externally triggered tasks.

    Identical task text submitted again within the debounce window is dropped.
    The cache is shared by every trigger source, so all access goes through a
    lock; stale entries are evicted on each insert.
    """

    def __init__(self, start_task: Callable[[str], None], scheduler: Optional[ITriggerScheduler] = None,
                 debounce_seconds: float = Limits.DEBOUNCE_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.start_task = start_task
        self.scheduler = scheduler
        self.debounce_seconds = debounce_seconds
        self.clock = clock
        self._recent: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _should_accept(self, task_text: str) -> bool:
        now = self.clock()
        with self._lock:
            last = self._recent.get(task_text)
            if last is not None and now - last < self.debounce_seconds:
                return False
            self._recent[task_text] = now
            stale = [k for k, t in self._recent.items() if now - t >= self.debounce_seconds]
            for key in stale:
                del self._recent[key]
            return True

    def submit(self, task_text: str, trigger_id: Optional[str] = None) -> bool:
        """
        Hands the task to the agent unless it was seen within the debounce window.

        Returns True when the task was handed off. A periodic trigger is
        rescheduled only after a handoff.

        Raises:
            TriggerSecurityError: the platform refused to reschedule the trigger.
        """
        task_text = (task_text or "").strip()
        accepted = False
        if not task_text:
            logger.warning("Ignoring trigger with empty task text")
        elif not self._should_accept(task_text):
            logger.info(f"Debounced duplicate task within {self.debounce_seconds:g}s: {task_text}")
        else:
            logger.info(f"Dispatching triggered task: {task_text}")
            self.start_task(task_text)
            accepted = True

        if accepted and trigger_id and self.scheduler is not None:
            try:
                self.scheduler.reschedule(trigger_id)
            except PermissionError as e:
                logger.error(f"Cannot reschedule trigger {trigger_id}: {e}")
                raise TriggerSecurityError(f"Cannot reschedule trigger '{trigger_id}': {e}") from e
        return accepted

    def cached_count(self) -> int:
        with self._lock:
            return len(self._recent)
