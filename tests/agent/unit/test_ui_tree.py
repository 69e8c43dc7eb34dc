import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from screenpilot.domain import EMPTY_SCREEN_TEXT, RawScreenData
from screenpilot.perception.perception import Perception, frame_listing
from screenpilot.perception.pruner import TreePruner
from screenpilot.perception.renderer import ScreenRenderer, center_of
from screenpilot.perception.ui_tree import UiNode, parse_bounds, parse_ui_tree

SEARCH_SCREEN = """<?xml version='1.0' encoding='UTF-8' standalone='yes' ?>
<hierarchy rotation="0">
  <node index="0" text="" resource-id="" class="android.widget.FrameLayout" content-desc=""
        clickable="false" enabled="true" bounds="[0,0][1080,2400]">
    <node index="0" text="Search" resource-id="com.app:id/search" class="android.widget.Button"
          content-desc="" clickable="true" enabled="true" bounds="[100,200][300,400]" />
    <node index="1" text="Hello" resource-id="" class="android.widget.TextView" content-desc=""
          clickable="false" enabled="true" bounds="[0,500][1080,600]" />
  </node>
</hierarchy>"""


def _render(xml, width=1080, height=2400, previous=None):
    root = parse_ui_tree(xml)
    pruned = TreePruner(width, height).prune_tree(root)
    return ScreenRenderer().render(pruned, previous)


def test_parse_empty_and_malformed_input():
    assert parse_ui_tree(None) is None
    assert parse_ui_tree("") is None
    assert parse_ui_tree("   \n") is None
    assert parse_ui_tree("<hierarchy><node text='a'") is None
    assert parse_ui_tree("<hierarchy/>") is None


def test_parse_builds_tree_and_ignores_unknown_tags():
    root = parse_ui_tree('<hierarchy><foo><node text="x" class="a.B"><bar/><node text="y"/></node></foo></hierarchy>')
    assert root is not None
    assert root.get("text") == "x"
    assert len(root.children) == 1
    assert root.children[0].get("text") == "y"
    assert root.children[0].parent is root


def test_parse_wraps_multiple_top_level_nodes_in_virtual_root():
    root = parse_ui_tree('<hierarchy><node text="a"/><node text="b"/></hierarchy>')
    assert root.class_name == "VirtualRoot"
    assert [c.get("text") for c in root.children] == ["a", "b"]


def test_parse_normalizes_non_breaking_spaces():
    root = parse_ui_tree('<hierarchy><node text="Pay\u00a0now\u200b"/></hierarchy>')
    assert root.visible_text == "Pay now"


@pytest.mark.parametrize("raw,expected", [
    ("[100,200][300,400]", (100, 200, 300, 400)),
    ("[0,0][1080,2400]", (0, 0, 1080, 2400)),
    ("", None),
    (None, None),
    ("[1,2][3]", None),
])
def test_parse_bounds(raw, expected):
    assert parse_bounds(raw) == expected


def test_visible_text_falls_back_to_content_description():
    assert UiNode({"text": " ", "content-desc": "Back"}).visible_text == "Back"
    assert UiNode({}).visible_text == ""


def test_disabled_node_is_not_interactive():
    assert UiNode({"clickable": "true", "enabled": "false"}).is_interactive() is False
    assert UiNode({"class": "android.widget.EditText"}).is_interactive() is True


def test_pruner_keeps_document_order_and_drops_empty_leaves():
    xml = """<hierarchy>
      <node class="android.widget.FrameLayout">
        <node class="android.widget.LinearLayout">
          <node text="A" clickable="true" bounds="[0,0][10,10]"/>
          <node class="android.view.View"/>
          <node text="B" clickable="true" bounds="[0,10][10,20]"/>
          <node class="android.view.View">
            <node text="C" clickable="true" bounds="[0,20][10,30]"/>
          </node>
        </node>
      </node>
    </hierarchy>"""
    root = parse_ui_tree(xml)
    pruned = TreePruner().prune_tree(root)
    texts = [n.get("text") for n in pruned.iter_preorder() if n.get("text")]
    assert texts == ["A", "B", "C"]
    layout = pruned.children[0]
    assert [c.get("text") for c in layout.children] == ["A", "B", ""]
    assert layout.children[2].children[0].get("text") == "C"


def test_pruner_drops_offscreen_nodes_but_hoists_visible_children():
    xml = """<hierarchy><node class="root" bounds="[0,0][1080,2400]">
      <node text="Offscreen" class="x.Panel" bounds="[2000,0][2100,100]">
        <node text="Inside" clickable="true" bounds="[10,10][50,50]"/>
      </node>
    </node></hierarchy>"""
    root = parse_ui_tree(xml)
    pruned = TreePruner(1080, 2400).prune_tree(root)
    assert [n.get("text") for n in pruned.children] == ["Inside"]


def test_pruner_does_not_mutate_input():
    root = parse_ui_tree(SEARCH_SCREEN)
    before = [c.get("text") for c in root.children]
    TreePruner(1080, 2400).prune_tree(root)
    assert [c.get("text") for c in root.children] == before


def test_renderer_indexes_interactive_elements():
    rendered = _render(SEARCH_SCREEN)
    lines = rendered.text.splitlines()
    assert lines[0] == ('* [1] text:"Search" <com.app:id/search> '
                        '<This element is clickable, enabled.> <widget.Button>')
    assert lines[1] == "* Hello"
    assert list(rendered.element_map) == [1]


def test_renderer_marks_only_new_elements():
    first = _render(SEARCH_SCREEN)
    second = _render(SEARCH_SCREEN, previous=first.node_keys)
    assert "*" not in second.text


def test_tap_target_center():
    rendered = _render(SEARCH_SCREEN)
    assert center_of(rendered.element_map[1]) == (200, 300)
    assert center_of(None) is None
    assert center_of(UiNode({"text": "no bounds"})) is None


def test_every_indexed_element_center_lies_within_its_bounds():
    xml = """<hierarchy><node class="root" bounds="[0,0][1080,2400]">
      <node text="one" clickable="true" bounds="[0,0][1,1]"/>
      <node text="two" clickable="true" bounds="[5,7][100,9]"/>
      <node text="three" checkable="true" bounds="[40,40][41,1000]"/>
    </node></hierarchy>"""
    rendered = _render(xml)
    assert len(rendered.element_map) == 3
    for node in rendered.element_map.values():
        left, top, right, bottom = node.bounds
        x, y = node.center()
        assert left <= x <= right
        assert top <= y <= bottom


def test_frame_listing():
    assert frame_listing("", 0, 0) == EMPTY_SCREEN_TEXT
    assert frame_listing("[1] a\n", 0, 0) == "[Start of page]\n[1] a\n[End of page]"
    framed = frame_listing("[1] a", 120, 300)
    assert framed.startswith("... 120 pixels above - scroll up to see more ...")
    assert framed.endswith("... 300 pixels below - scroll down to see more ...")


@pytest.mark.asyncio
async def test_perception_analyze_builds_snapshot():
    eyes = MagicMock()
    eyes.get_raw_screen_data = AsyncMock(return_value=RawScreenData(SEARCH_SCREEN, screen_width=1080, screen_height=2400))
    eyes.get_keyboard_visible = AsyncMock(return_value=True)
    eyes.get_foreground_activity = AsyncMock(return_value="com.app/.MainActivity")

    analysis = await Perception(eyes).analyze()

    assert analysis.is_keyboard_open is True
    assert analysis.activity_name == "com.app/.MainActivity"
    assert analysis.ui_representation.startswith("[Start of page]")
    assert analysis.center_of_element(1) == (200, 300)
    assert analysis.element(2) is None
    assert "Search|com.app:id/search|android.widget.Button" in analysis.node_keys
    with pytest.raises(TypeError):
        analysis.element_map[5] = None


@pytest.mark.asyncio
async def test_perception_degrades_when_observation_fails():
    eyes = MagicMock()
    eyes.get_raw_screen_data = AsyncMock(side_effect=RuntimeError("uiautomator crashed"))
    eyes.get_keyboard_visible = AsyncMock(side_effect=RuntimeError("no ime"))
    eyes.get_foreground_activity = AsyncMock(return_value=None)

    analysis = await Perception(eyes).analyze()

    assert analysis.ui_representation == EMPTY_SCREEN_TEXT
    assert analysis.is_keyboard_open is False
    assert analysis.activity_name == "unknown"
    assert len(analysis.element_map) == 0


@pytest.mark.asyncio
async def test_perception_reads_device_concurrently():
    activity_read = asyncio.Event()

    async def dump_after_activity():
        await activity_read.wait()
        return RawScreenData(SEARCH_SCREEN, screen_width=1080, screen_height=2400)

    async def activity():
        activity_read.set()
        return "com.app/.MainActivity"

    eyes = MagicMock()
    eyes.get_raw_screen_data = dump_after_activity
    eyes.get_keyboard_visible = AsyncMock(return_value=False)
    eyes.get_foreground_activity = activity

    analysis = await asyncio.wait_for(Perception(eyes).analyze(), timeout=2)

    assert analysis.activity_name == "com.app/.MainActivity"
    assert analysis.center_of_element(1) == (200, 300)
