import asyncio
import logging
from typing import Iterable, Optional

from ..domain import EMPTY_SCREEN_TEXT, RawScreenData, ScreenAnalysis
from ..interfaces import IEyes
from .pruner import TreePruner
from .renderer import ScreenRenderer
from .ui_tree import parse_ui_tree

logger = logging.getLogger("agent.perception")


class Perception:
    """Observes the device and turns one screen dump into a ScreenAnalysis."""

    def __init__(self, eyes: IEyes, renderer: Optional[ScreenRenderer] = None):
        self.eyes = eyes
        self.renderer = renderer or ScreenRenderer()

    async def analyze(self, previous_keys: Optional[Iterable[str]] = None) -> ScreenAnalysis:
        """
        Captures the UI dump, keyboard status and foreground activity
        concurrently, then parses, prunes and renders the dump.

        A missing or failing dump degrades to a placeholder hierarchy; this
        method does not raise for observation failures.
        """
        raw, keyboard, activity = await asyncio.gather(
            self.eyes.get_raw_screen_data(),
            self.eyes.get_keyboard_visible(),
            self.eyes.get_foreground_activity(),
            return_exceptions=True,
        )

        if isinstance(raw, BaseException) or raw is None:
            if isinstance(raw, BaseException):
                logger.warning(f"Screen dump failed: {raw}")
            else:
                logger.warning("Screen dump unavailable, using placeholder hierarchy")
            raw = RawScreenData.unavailable()
        if isinstance(keyboard, BaseException):
            logger.warning(f"Keyboard status unavailable: {keyboard}")
            keyboard = False
        if isinstance(activity, BaseException):
            logger.warning(f"Foreground activity unavailable: {activity}")
            activity = "unknown"

        return self.build_analysis(raw, bool(keyboard), activity or "unknown", previous_keys)

    def build_analysis(self, raw: RawScreenData, is_keyboard_open: bool, activity_name: str,
                       previous_keys: Optional[Iterable[str]] = None) -> ScreenAnalysis:
        root = parse_ui_tree(raw.xml)
        pruned = TreePruner(raw.screen_width, raw.screen_height).prune_tree(root)
        rendered = self.renderer.render(pruned, previous_keys)

        return ScreenAnalysis(
            ui_representation=frame_listing(rendered.text, raw.pixels_above, raw.pixels_below),
            is_keyboard_open=is_keyboard_open,
            activity_name=activity_name,
            element_map=rendered.element_map,
            scroll_up=raw.pixels_above,
            scroll_down=raw.pixels_below,
            node_keys=frozenset(rendered.node_keys),
        )


def frame_listing(listing: str, pixels_above: int, pixels_below: int) -> str:
    """Wraps a rendered listing with scroll-position hints."""
    if not listing.strip():
        return EMPTY_SCREEN_TEXT

    listing = listing.rstrip("\n")
    if pixels_above > 0:
        head = f"... {pixels_above} pixels above - scroll up to see more ..."
    else:
        head = "[Start of page]"
    if pixels_below > 0:
        tail = f"... {pixels_below} pixels below - scroll down to see more ..."
    else:
        tail = "[End of page]"
    return f"{head}\n{listing}\n{tail}"
