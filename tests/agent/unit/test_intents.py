import logging

from screenpilot.actions.intents import (
    ACTION_SEND, ACTION_SENDTO, EXTRA_EMAIL, EXTRA_SUBJECT, EXTRA_TEXT, DialIntent, IntentRegistry, ViewUrlIntent,
)


def test_default_registry():
    registry = IntentRegistry.default()
    assert [i.name for i in registry.list_intents()] == ["Dial", "ViewUrl", "ShareText", "EmailCompose"]
    assert registry.find_by_name("Dial").name == "Dial"
    assert registry.find_by_name("emailcompose").name == "EmailCompose"
    assert registry.find_by_name("Fax") is None


def test_dial_strips_spaces_and_requires_number():
    intent = DialIntent()
    assert intent.build_intent({"phone_number": "+49 30 1234"}).data == "tel:+49301234"
    assert intent.build_intent({}) is None
    assert intent.build_intent({"phone_number": "   "}) is None


def test_share_text_defaults_chooser_title():
    share = IntentRegistry.default().find_by_name("ShareText")
    descriptor = share.build_intent({"text": "see you at 8"})
    assert descriptor.action == ACTION_SEND
    assert descriptor.mime_type == "text/plain"
    assert descriptor.extras[EXTRA_TEXT] == "see you at 8"
    assert descriptor.chooser_title == "Share via"
    assert share.build_intent({"text": "x", "chooser_title": "Send"}).chooser_title == "Send"


def test_email_compose_builds_mailto():
    email = IntentRegistry.default().find_by_name("EmailCompose")
    descriptor = email.build_intent({"to": "ana@example.com", "subject": "Hi"})
    assert descriptor.action == ACTION_SENDTO
    assert descriptor.data == "mailto:ana@example.com"
    assert descriptor.extras[EXTRA_EMAIL] == "ana@example.com"
    assert descriptor.extras[EXTRA_SUBJECT] == "Hi"
    assert EXTRA_TEXT not in descriptor.extras


def test_duplicate_registration_overrides(caplog):
    registry = IntentRegistry([DialIntent()])

    class LoudDial(DialIntent):
        pass

    with caplog.at_level(logging.WARNING, logger="agent.actions"):
        registry.register(LoudDial())

    assert isinstance(registry.find_by_name("Dial"), LoudDial)
    assert len(registry.list_intents()) == 1
    assert "Duplicate intent registration for name: Dial" in caplog.text


def test_describe_catalog():
    assert IntentRegistry().describe() == ""
    catalog = IntentRegistry([ViewUrlIntent()]).describe()
    assert "<name>ViewUrl</name>" in catalog
    assert "<name>url</name>" in catalog
    assert "<required>true</required>" in catalog
