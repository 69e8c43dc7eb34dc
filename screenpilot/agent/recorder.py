import json
import logging
import os
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..actions.schema import encode_action
from ..domain import ActionResult, AgentOutput, AgentRunResult, ScreenAnalysis, StepMetadata

logger = logging.getLogger("agent.monitoring")


class StepRecorder:
    """Records agent sessions as one JSON line per step plus a summary file."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        self.session_dir: Optional[str] = None
        self.start_time: Optional[float] = None
        self.step_count = 0

    def start(self, task: str):
        """Initializes a new recording session."""
        self.step_count = 0
        self.start_time = time.time()
        self.session_dir = os.path.join(self.output_dir, f"session_{int(self.start_time * 1000)}")
        os.makedirs(self.session_dir, exist_ok=True)
        with open(os.path.join(self.session_dir, "task.txt"), "w", encoding="utf-8") as f:
            f.write(task)
        logger.info(f"Started recording session in {self.session_dir}")

    def record(self, step_number: int, screen: ScreenAnalysis, output: Optional[AgentOutput],
               results: List[ActionResult], metadata: Optional[StepMetadata] = None, error: Optional[str] = None):
        if self.session_dir is None:
            return
        self.step_count += 1
        timestamp = time.time()

        entry = {
            "step_num": step_number,
            "timestamp": datetime.fromtimestamp(timestamp).strftime("%Y%m%d@%H%M%S%f"),
            "activity": screen.activity_name,
            "keyboard_open": screen.is_keyboard_open,
            "interactive_elements": len(screen.element_map),
            "screen": screen.ui_representation,
            "model_output": self._output_to_dict(output),
            "results": [self._result_to_dict(r) for r in results],
            "error": error,
            "duration": metadata.duration_seconds if metadata else None,
        }
        with open(os.path.join(self.session_dir, "steps.jsonl"), "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def finalize(self, result: AgentRunResult):
        """Writes the session summary."""
        if self.session_dir is None:
            return
        summary = {
            "success": result.success,
            "steps": result.steps,
            "final_text": result.final_text,
            "attachments": result.attachments,
            "duration": time.time() - (self.start_time or time.time()),
            "metadata": result.metadata,
        }
        with open(os.path.join(self.session_dir, "summary.json"), "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2, ensure_ascii=False)
        logger.info(f"Finalized session in {self.session_dir}. Success: {result.success}")

    def _output_to_dict(self, output: Optional[AgentOutput]) -> Optional[Dict[str, Any]]:
        if output is None:
            return None
        return {
            "thinking": output.thinking,
            "evaluation_previous_goal": output.evaluation_previous_goal,
            "memory": output.memory,
            "next_goal": output.next_goal,
            "action": [encode_action(a) for a in output.action],
        }

    def _result_to_dict(self, result: ActionResult) -> Dict[str, Any]:
        return {
            "is_done": result.is_done,
            "success": result.success,
            "error": result.error,
            "long_term_memory": result.long_term_memory,
            "extracted_content": result.extracted_content,
            "attachments": result.attachments,
        }
