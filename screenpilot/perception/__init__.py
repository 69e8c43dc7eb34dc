from .ui_tree import UiNode, parse_ui_tree, parse_bounds
from .pruner import TreePruner
from .renderer import ScreenRenderer, RenderedScreen, center_of, describe_element

__all__ = [
    "UiNode",
    "parse_ui_tree",
    "parse_bounds",
    "TreePruner",
    "ScreenRenderer",
    "RenderedScreen",
    "center_of",
    "describe_element",
]
