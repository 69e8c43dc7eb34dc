from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .ui_tree import UiNode

NEW_MARKER = "* "


@dataclass
class RenderedScreen:
    """Output of one render pass."""
    text: str
    element_map: Dict[int, UiNode] = field(default_factory=dict)
    node_keys: Set[str] = field(default_factory=set)


class ScreenRenderer:
    """
    Renders a pruned UI tree into a tab-indented listing for LLM consumption.

    Interactive nodes get a 1-based index, assigned in render order:

        [1] text:"Search" <com.app:id/search> <This element is clickable.> <widget.Button>

    Non-interactive nodes are printed only when they carry visible text.
    Nodes absent from ``previous_keys`` are prefixed with "* ".
    """

    def render(self, root: Optional[UiNode], previous_keys: Optional[Iterable[str]] = None) -> RenderedScreen:
        result = RenderedScreen(text="")
        if root is None:
            return result

        seen = set(previous_keys or ())
        lines: List[str] = []
        for child in root.children:
            self._render_node(child, 0, lines, seen, result)
        result.text = "".join(lines)
        return result

    def _render_node(self, node: UiNode, depth: int, lines: List[str],
                     previous_keys: Set[str], result: RenderedScreen):
        indent = "\t" * depth
        key = node.key
        is_new = node.is_semantically_important() and key not in previous_keys
        marker = NEW_MARKER if is_new else ""
        if node.is_semantically_important():
            result.node_keys.add(key)

        if node.is_interactive():
            index = len(result.element_map) + 1
            result.element_map[index] = node
            lines.append(f"{indent}{marker}[{index}] {describe_element(node)}\n")
        else:
            text = node.visible_text
            if text.strip():
                lines.append(f"{indent}{marker}{_one_line(text)}\n")

        for child in node.children:
            self._render_node(child, depth + 1, lines, previous_keys, result)


def describe_element(node: UiNode) -> str:
    """`text:"<text>" <resource-id> <extra-info> <class>` for an interactive node."""
    return (
        f"text:\"{_one_line(node.visible_text)}\" "
        f"<{node.resource_id}> "
        f"<{node.extra_info}> "
        f"<{node.short_class_name}>"
    )


def center_of(node: Optional[UiNode]) -> Optional[Tuple[int, int]]:
    """Midpoint of a node's bounds, or None when the node or its bounds are unusable."""
    if node is None:
        return None
    return node.center()


def _one_line(text: str) -> str:
    return text.replace("\n", " ")
