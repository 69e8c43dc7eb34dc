"""Structural pruning of the raw UI tree."""
from typing import List, Optional

from .ui_tree import UiNode


class TreePruner:
    """
    Collapses structurally noisy nodes while keeping document order.

    Invisible nodes are always dropped and replaced by their surviving
    children. Visible nodes are kept when they are interactive, carry a
    resource-id/text/content-description, or still have children after
    pruning; otherwise they are elided the same way.

    The pruner never mutates its input: it returns fresh nodes that share
    nothing with the original tree except attribute values.
    """

    def __init__(self, screen_width: int = 0, screen_height: int = 0):
        self.screen_width = screen_width
        self.screen_height = screen_height

    @property
    def checks_visibility(self) -> bool:
        return self.screen_width > 0 and self.screen_height > 0

    def prune_tree(self, root: Optional[UiNode]) -> Optional[UiNode]:
        """Returns a pruned copy of ``root``; the root itself is always kept."""
        if root is None:
            return None
        kept: List[UiNode] = []
        for child in root.children:
            kept.extend(self.prune(child))
        return UiNode(root.attributes, kept)

    def prune(self, node: UiNode) -> List[UiNode]:
        """Returns the nodes that replace ``node`` in its parent's child list."""
        survivors: List[UiNode] = []
        for child in node.children:
            survivors.extend(self.prune(child))

        if self.checks_visibility and not node.is_visible_on_screen(self.screen_width, self.screen_height):
            return survivors

        if node.is_interactive() or node.is_semantically_important() or survivors:
            return [UiNode(node.attributes, survivors)]
        return survivors
