import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from screenpilot.actions.executor import INVALID_FILENAME_ERROR, ActionExecutor, resolve_package
from screenpilot.actions.intents import ACTION_DIAL, ACTION_VIEW
from screenpilot.actions.schema import (
    Ask, Back, Done, LaunchIntent, LongPressElement, OpenApp, ReadFile, ScrollDown, SearchGoogle, Speak,
    TapElement, TapElementInputTextPressEnter, Wait, WriteFile, get_all_specs,
)
from screenpilot.domain import IntentDescriptor, ScreenAnalysis
from screenpilot.perception.ui_tree import UiNode

APPS = {
    "YouTube": "com.google.android.youtube",
    "Chrome": "com.android.chrome",
    "Google Maps": "com.google.android.apps.maps",
}


def _screen():
    search = UiNode({"text": "Search", "resource-id": "com.app:id/search", "class": "android.widget.Button",
                     "clickable": "true", "bounds": "[100,200][300,400]"})
    floating = UiNode({"text": "Ghost", "clickable": "true"})
    return ScreenAnalysis(ui_representation="", is_keyboard_open=False, activity_name="com.app/.Main",
                          element_map={1: search, 2: floating})


def _executor(**kwargs):
    finger = AsyncMock()
    file_system = MagicMock()
    file_system.read_file = AsyncMock(return_value="file body")
    file_system.write_file = AsyncMock(return_value=True)
    file_system.append_file = AsyncMock(return_value=True)
    user = AsyncMock()
    apps = MagicMock()
    apps.installed_apps = AsyncMock(return_value=dict(APPS))
    executor = ActionExecutor(finger, file_system, user, apps, wait_seconds=0, settle_delay=0, **kwargs)
    return executor, finger, file_system, user


def test_every_action_has_a_handler():
    for spec in get_all_specs():
        assert hasattr(ActionExecutor, f"_execute_{spec.name}"), spec.name


def test_resolve_package():
    assert resolve_package("youtube", APPS) == "com.google.android.youtube"
    assert resolve_package("maps", APPS) == "com.google.android.apps.maps"
    assert resolve_package("Spotify", APPS) is None
    assert resolve_package("  ", APPS) is None


@pytest.mark.asyncio
async def test_tap_element_taps_center():
    executor, finger, _, _ = _executor()

    result = await executor.execute(TapElement(1), _screen())

    finger.tap.assert_awaited_once_with(200, 300)
    assert result.error is None
    assert result.long_term_memory.startswith('Tapped element text:"Search" <com.app:id/search>')


@pytest.mark.asyncio
async def test_tap_element_not_found():
    executor, finger, _, _ = _executor()

    result = await executor.execute(TapElement(99), _screen())

    assert result.error == "Element with ID 99 not found in the current screen state."
    finger.tap.assert_not_awaited()


@pytest.mark.asyncio
async def test_element_without_bounds():
    executor, finger, _, _ = _executor()

    result = await executor.execute(LongPressElement(2), _screen())

    assert result.error == "Element with ID 2 has no bounds information."
    finger.long_press.assert_not_awaited()


@pytest.mark.asyncio
async def test_tap_input_text_and_enter():
    executor, finger, _, _ = _executor()

    result = await executor.execute(TapElementInputTextPressEnter(1, "cats"), _screen())

    finger.tap.assert_awaited_once_with(200, 300)
    finger.type.assert_awaited_once_with("cats")
    assert result.long_term_memory.startswith("Typed cats into element")


@pytest.mark.asyncio
async def test_wait_sleeps_configured_seconds():
    executor, _, _, _ = _executor()
    executor.wait_seconds = 5

    with patch("screenpilot.actions.executor.asyncio.sleep", new_callable=AsyncMock) as sleep:
        result = await executor.execute(Wait(), _screen())

    sleep.assert_awaited_once_with(5)
    assert result.long_term_memory == "Waited for 5 seconds."


@pytest.mark.asyncio
async def test_device_actions():
    executor, finger, _, _ = _executor()

    await executor.execute(Back(), _screen())
    result = await executor.execute(ScrollDown(600), _screen())

    finger.back.assert_awaited_once()
    finger.scroll_down.assert_awaited_once_with(600)
    assert result.long_term_memory == "Scrolled down by 600 pixels."


@pytest.mark.asyncio
async def test_open_app_resolves_label():
    executor, finger, _, _ = _executor()
    finger.open_app.return_value = True

    result = await executor.execute(OpenApp("youtube"), _screen())

    finger.open_app.assert_awaited_once_with("com.google.android.youtube")
    assert result.error is None


@pytest.mark.asyncio
async def test_open_app_unknown_and_failed_launch():
    executor, finger, _, _ = _executor()

    missing = await executor.execute(OpenApp("Spotify"), _screen())
    assert missing.error.startswith("App 'Spotify' not found.")
    finger.open_app.assert_not_awaited()

    finger.open_app.return_value = False
    failed = await executor.execute(OpenApp("Chrome"), _screen())
    assert failed.error.startswith("Failed to open app 'Chrome' (package: com.android.chrome).")


@pytest.mark.asyncio
async def test_search_google_launches_view_intent():
    executor, finger, _, _ = _executor()
    finger.launch_external_intent.return_value = True

    result = await executor.execute(SearchGoogle("weather today"), _screen())

    intent = finger.launch_external_intent.await_args.args[0]
    assert intent.action == ACTION_VIEW
    assert intent.data == "https://www.google.com/search?q=weather+today"
    assert result.error is None


@pytest.mark.asyncio
async def test_launch_intent():
    executor, finger, _, _ = _executor()
    finger.launch_external_intent.return_value = True

    result = await executor.execute(LaunchIntent("dial", {"phone_number": "+1 555 1234"}), _screen())

    finger.launch_external_intent.assert_awaited_once_with(
        IntentDescriptor(action=ACTION_DIAL, data="tel:+15551234")
    )
    assert result.error is None


@pytest.mark.asyncio
async def test_launch_intent_errors():
    executor, finger, _, _ = _executor()

    unknown = await executor.execute(LaunchIntent("Teleport", {}), _screen())
    assert unknown.error == "Intent 'Teleport' not found. Check intents catalog for valid names."

    invalid = await executor.execute(LaunchIntent("Dial", {}), _screen())
    assert invalid.error == "Intent 'Dial' missing or invalid parameters: {}"
    finger.launch_external_intent.assert_not_awaited()


@pytest.mark.asyncio
async def test_ask_result_is_shown_once():
    executor, _, _, user = _executor()
    user.ask.return_value = "Blue"

    result = await executor.execute(Ask("Favourite colour?"), _screen())

    assert result.long_term_memory == "Asked user: 'Favourite colour?'. User responded: 'Blue'."
    assert result.extracted_content == "Blue"
    assert result.include_extracted_content_only_once is True


@pytest.mark.asyncio
async def test_speak():
    executor, _, _, user = _executor()

    await executor.execute(Speak("Hello there"), _screen())

    user.speak.assert_awaited_once_with("Hello there")


@pytest.mark.asyncio
async def test_file_actions_validate_names():
    executor, _, file_system, _ = _executor()

    result = await executor.execute(ReadFile("../secrets.md"), _screen())
    assert result.error == INVALID_FILENAME_ERROR
    file_system.read_file.assert_not_awaited()

    result = await executor.execute(WriteFile("notes.json", "{}"), _screen())
    assert result.error == INVALID_FILENAME_ERROR
    file_system.write_file.assert_not_awaited()

    result = await executor.execute(WriteFile("notes.md\n", "x"), _screen())
    assert result.error == INVALID_FILENAME_ERROR
    file_system.write_file.assert_not_awaited()


@pytest.mark.asyncio
async def test_read_file():
    executor, _, file_system, _ = _executor()

    result = await executor.execute(ReadFile("notes.md"), _screen())
    assert result.extracted_content == "file body"
    assert result.include_extracted_content_only_once is True

    file_system.read_file.return_value = "Error: File 'notes.md' not found."
    missing = await executor.execute(ReadFile("notes.md"), _screen())
    assert missing.error == "Error: File 'notes.md' not found."


@pytest.mark.asyncio
async def test_done_carries_attachments():
    executor, _, _, _ = _executor()

    result = await executor.execute(Done(True, "All set", ("results.md",)), _screen())

    assert result.is_done is True
    assert result.success is True
    assert result.long_term_memory == "Task finished: All set"
    assert result.attachments == ["results.md"]


@pytest.mark.asyncio
async def test_handler_exception_becomes_error_result():
    executor, finger, _, _ = _executor()
    finger.back.side_effect = RuntimeError("boom")

    result = await executor.execute(Back(), _screen())

    assert result.error == "Action 'back' failed: RuntimeError: boom"
