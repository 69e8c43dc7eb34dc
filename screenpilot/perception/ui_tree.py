"""
UI hierarchy model and parser.

Parses a uiautomator-style dump:

    <hierarchy rotation="0">
        <node index="0" text="" resource-id="" class="android.widget.FrameLayout"
              content-desc="" clickable="false" enabled="true" bounds="[0,0][1080,2400]">
            <node ...>...</node>
        </node>
    </hierarchy>

into a tree of UiNode objects. Only ``node`` tags are meaningful; every other
tag is ignored.
"""
import logging
import re
import weakref
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger("agent.perception")

# Bounds parsing regex: "[left,top][right,bottom]"
BOUNDS_PATTERN = re.compile(r"\[(\d+),(\d+)\]\[(\d+),(\d+)\]")

# Characters the dump sometimes carries that the XML parser chokes on or that
# render as invisible noise in the listing.
_WHITESPACE_TRANSLATION = str.maketrans({
    "\u00a0": " ",
    "\u2007": " ",
    "\u202f": " ",
    "\u2009": " ",
    "\u200a": " ",
    "\u3000": " ",
    "\u200b": "",
    "\ufeff": "",
})

TEXT_INPUT_CLASSES = frozenset({
    "android.widget.EditText",
    "android.widget.AutoCompleteTextView",
    "android.widget.MultiAutoCompleteTextView",
})

INTERACTIVE_FLAGS = ("clickable", "long-clickable", "checkable", "scrollable", "password", "focusable")

EXTRA_INFO_FLAGS = (
    "checkable", "checked", "clickable", "enabled", "focusable",
    "focused", "scrollable", "long-clickable", "selected",
)


def parse_bounds(bounds: Optional[str]) -> Optional[Tuple[int, int, int, int]]:
    """Returns (left, top, right, bottom) or None for missing/malformed bounds."""
    if not bounds:
        return None
    match = BOUNDS_PATTERN.search(bounds)
    if not match:
        return None
    left, top, right, bottom = (int(g) for g in match.groups())
    return left, top, right, bottom


class UiNode:
    """
    One element of the UI hierarchy.

    Children are owned; the parent link is a weak reference used for lookups
    only, so detaching a subtree never keeps its former ancestors alive.
    """

    __slots__ = ("attributes", "children", "_parent", "__weakref__")

    def __init__(self, attributes: Optional[Dict[str, str]] = None,
                 children: Optional[List["UiNode"]] = None):
        self.attributes: Dict[str, str] = dict(attributes or {})
        self.children: List[UiNode] = []
        self._parent = None
        for child in children or []:
            self.add_child(child)

    def __repr__(self) -> str:
        text = self.visible_text
        parts = []
        if text:
            parts.append(f"text='{text}'")
        if self.resource_id:
            parts.append(f"id='{self.resource_id}'")
        return f"UiNode({' '.join(parts)}, children={len(self.children)})"

    @property
    def parent(self) -> Optional["UiNode"]:
        return self._parent() if self._parent is not None else None

    def add_child(self, child: "UiNode"):
        child._parent = weakref.ref(self)
        self.children.append(child)

    def get(self, key: str, default: str = "") -> str:
        return self.attributes.get(key, default)

    def flag(self, key: str) -> bool:
        return self.attributes.get(key) == "true"

    @property
    def resource_id(self) -> str:
        return self.attributes.get("resource-id", "")

    @property
    def class_name(self) -> str:
        return self.attributes.get("class", "")

    @property
    def short_class_name(self) -> str:
        name = self.class_name
        return name[len("android."):] if name.startswith("android.") else name

    @property
    def visible_text(self) -> str:
        """Literal text if present, otherwise the content description."""
        text = self.attributes.get("text", "")
        if text.strip():
            return text
        desc = self.attributes.get("content-desc", "")
        if desc.strip():
            return desc
        return ""

    @property
    def extra_info(self) -> str:
        """Human readable summary of the boolean flags that are set."""
        parts = [prop.replace("-", " ") for prop in EXTRA_INFO_FLAGS if self.flag(prop)]
        if not parts:
            return ""
        return f"This element is {', '.join(parts)}."

    @property
    def key(self) -> str:
        """Identity of a node across snapshots: text|resource-id|class."""
        return f"{self.visible_text}|{self.resource_id}|{self.class_name}"

    @property
    def bounds(self) -> Optional[Tuple[int, int, int, int]]:
        return parse_bounds(self.attributes.get("bounds"))

    def center(self) -> Optional[Tuple[int, int]]:
        rect = self.bounds
        if rect is None:
            return None
        left, top, right, bottom = rect
        return (left + right) // 2, (top + bottom) // 2

    def is_semantically_important(self) -> bool:
        return any(self.attributes.get(k, "").strip() for k in ("resource-id", "text", "content-desc"))

    def is_interactive(self) -> bool:
        if self.attributes.get("enabled") == "false":
            return False
        if any(self.flag(f) for f in INTERACTIVE_FLAGS):
            return True
        return self.class_name in TEXT_INPUT_CLASSES

    def is_visible_on_screen(self, screen_width: int, screen_height: int) -> bool:
        """True if at least one pixel of the node overlaps the viewport."""
        rect = self.bounds
        if rect is None:
            return False
        left, top, right, bottom = rect
        if right <= 0 or left >= screen_width or bottom <= 0 or top >= screen_height:
            return False
        return True

    def iter_preorder(self):
        yield self
        for child in self.children:
            yield from child.iter_preorder()


def normalize_dump(xml_text: str) -> str:
    return xml_text.translate(_WHITESPACE_TRANSLATION)


def parse_ui_tree(xml_text: Optional[str]) -> Optional[UiNode]:
    """
    Builds a UiNode tree from a raw hierarchy dump.

    Returns None for empty or unparseable input; never raises. When the dump
    holds several top-level nodes they are wrapped in a virtual root.
    """
    if not xml_text or not xml_text.strip():
        return None

    parser = ET.XMLPullParser(events=("start", "end"))
    stack: List[UiNode] = []
    roots: List[UiNode] = []

    try:
        parser.feed(normalize_dump(xml_text))
        parser.close()
        for event, element in parser.read_events():
            if element.tag != "node":
                continue
            if event == "start":
                node = UiNode(element.attrib)
                if stack:
                    stack[-1].add_child(node)
                else:
                    roots.append(node)
                stack.append(node)
            elif stack:
                stack.pop()
    except ET.ParseError as e:
        logger.error(f"Failed to parse UI dump: {e}")
        return None

    if not roots:
        return None
    if len(roots) == 1:
        return roots[0]
    return UiNode({"class": "VirtualRoot", "enabled": "true"}, roots)
