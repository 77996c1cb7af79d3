"""Keyboard mapping and accessibility channel tests."""

import logging

import pytest

from helpers.builders import q
from helpers.fakes import RecordingAnnouncer, RecordingFocus
from questionnaire_engine.keyboard import KeyboardCoordinator, KeyEvent, KeyHandlers, KeyIntent, map_key_event
from questionnaire_engine.models import NavigationState

OPEN = NavigationState(can_go_next=True, can_go_previous=True, is_last_page=False)
CLOSED = NavigationState(can_go_next=False, can_go_previous=False, is_last_page=False)


class TestMapKeyEvent:
    @pytest.mark.parametrize(
        "event, intent",
        [
            (KeyEvent("ArrowRight"), KeyIntent.ADVANCE),
            (KeyEvent("Enter"), KeyIntent.ADVANCE),
            (KeyEvent("PageDown"), KeyIntent.ADVANCE),
            (KeyEvent("ArrowLeft"), KeyIntent.RETREAT),
            (KeyEvent("PageUp"), KeyIntent.RETREAT),
            (KeyEvent("Escape"), KeyIntent.DISMISS),
            (KeyEvent("s", ctrl=True), KeyIntent.SAVE),
            (KeyEvent("S", meta=True), KeyIntent.SAVE),
            (KeyEvent("x"), None),
        ],
    )
    def test_outside_inputs(self, event, intent):
        assert map_key_event(event) == intent

    @pytest.mark.parametrize(
        "event, intent",
        [
            (KeyEvent("ArrowRight", in_input_field=True), None),
            (KeyEvent("Enter", in_input_field=True), None),
            (KeyEvent("Escape", in_input_field=True), None),
            (KeyEvent("Enter", ctrl=True, in_input_field=True), KeyIntent.ADVANCE),
            (KeyEvent("Enter", meta=True, in_input_field=True), KeyIntent.ADVANCE),
            (KeyEvent("s", ctrl=True, in_input_field=True), KeyIntent.SAVE),
        ],
    )
    def test_inside_inputs(self, event, intent):
        assert map_key_event(event) == intent


class TestHandle:
    @staticmethod
    def _handlers(calls):
        async def advance():
            calls.append("advance")

        async def retreat():
            calls.append("retreat")

        async def save():
            calls.append("save")

        return KeyHandlers(
            on_advance=advance,
            on_retreat=retreat,
            on_save=save,
            on_dismiss=lambda: calls.append("dismiss"),
        )

    @pytest.mark.asyncio
    async def test_advance_and_retreat_when_allowed(self):
        calls = []
        keyboard = KeyboardCoordinator()
        assert await keyboard.handle(KeyEvent("Enter"), OPEN, self._handlers(calls)) == KeyIntent.ADVANCE
        assert await keyboard.handle(KeyEvent("PageUp"), OPEN, self._handlers(calls)) == KeyIntent.RETREAT
        assert calls == ["advance", "retreat"]

    @pytest.mark.asyncio
    async def test_blocked_directions_are_no_ops(self):
        calls = []
        keyboard = KeyboardCoordinator()
        assert await keyboard.handle(KeyEvent("ArrowRight"), CLOSED, self._handlers(calls)) is None
        assert await keyboard.handle(KeyEvent("ArrowLeft"), CLOSED, self._handlers(calls)) is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_save_and_dismiss_ignore_gate(self):
        calls = []
        keyboard = KeyboardCoordinator()
        await keyboard.handle(KeyEvent("s", ctrl=True, in_input_field=True), CLOSED, self._handlers(calls))
        await keyboard.handle(KeyEvent("Escape"), CLOSED, self._handlers(calls))
        assert calls == ["save", "dismiss"]

    @pytest.mark.asyncio
    async def test_missing_handler(self):
        keyboard = KeyboardCoordinator()
        assert await keyboard.handle(KeyEvent("Enter"), OPEN, KeyHandlers()) is None


class TestAccessibility:
    def test_focuses_first_invalid_in_page_order(self):
        focus = RecordingFocus()
        keyboard = KeyboardCoordinator(focus=focus)
        questions = [q("a"), q("b"), q("c")]
        assert keyboard.scroll_to_first_invalid({"c": "bad", "b": "bad"}, questions) == "b"
        assert focus.focused == ["b"]

    def test_nothing_invalid(self):
        focus = RecordingFocus()
        keyboard = KeyboardCoordinator(focus=focus)
        assert keyboard.scroll_to_first_invalid({}, [q("a")]) is None
        assert focus.focused == []

    def test_announce_passes_priority(self):
        announcer = RecordingAnnouncer()
        KeyboardCoordinator(announcer=announcer).announce("Saved", "assertive")
        assert announcer.messages == [("Saved", "assertive")]

    def test_collaborator_failures_are_logged(self, caplog):
        class Broken(RecordingAnnouncer, RecordingFocus):
            def announce(self, message, priority="polite"):
                raise RuntimeError("no live region")

            def focus(self, question_id):
                raise RuntimeError("element gone")

        broken = Broken()
        keyboard = KeyboardCoordinator(announcer=broken, focus=broken)
        with caplog.at_level(logging.ERROR):
            keyboard.announce("hello")
            assert keyboard.scroll_to_first_invalid({"a": "bad"}, [q("a")]) == "a"
        assert "Announcer failed" in caplog.text
        assert "Focus handler failed" in caplog.text
