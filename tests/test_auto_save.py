"""
Unit tests for the Auto-Save Engine.

Run tests with: python -m pytest tests/test_auto_save.py -v
"""

import json
from unittest.mock import MagicMock

import pytest

from services.session_keeper.auto_save import AUTO_SAVE_TIMER, AutoSaveEngine, EditorState
from shared.backup_storage import backup_key
from tests.helpers import START_TIME, FakeCanvas


class EditorStub:
    """Mutable editor the engine reads from on every tick."""

    def __init__(self, canvas=None, design_id=None):
        self.state = EditorState(active_canvas=canvas, active_design_id=design_id)

    def __call__(self):
        return self.state


@pytest.fixture
def editor():
    return EditorStub(FakeCanvas([{"type": "rect"}]), "design-42")


@pytest.fixture
def engine(editor, storage, scheduler, timers, settings):
    return AutoSaveEngine(editor, storage, scheduler, timers, settings)


def test_backup_key_format():
    assert backup_key("abc") == "design_abc_backup"


class TestTick:

    def test_first_tick_writes_snapshot(self, engine, storage):
        assert engine.tick() is True

        snapshot = json.loads(storage.data["design_design-42_backup"])
        assert snapshot == {
            "designId": "design-42",
            "serializedState": {"version": "5.3.0", "objects": [{"type": "rect"}]},
            "timestamp": int(START_TIME * 1000),
        }

    def test_identical_state_is_not_rewritten(self, engine, storage):
        engine.tick()
        assert engine.tick() is False
        assert storage.set_calls == [backup_key("design-42")]

    def test_changed_state_is_written_once(self, engine, editor, storage):
        engine.tick()
        editor.state.active_canvas.objects.append({"type": "circle"})

        assert engine.tick() is True
        assert engine.tick() is False
        assert len(storage.set_calls) == 2

    @pytest.mark.parametrize("state", [
        None,
        EditorState(),
        EditorState(active_canvas=FakeCanvas(), active_design_id=None),
        EditorState(active_canvas=None, active_design_id="design-42"),
    ])
    def test_nothing_to_save_is_a_no_op(self, engine, editor, storage, state):
        editor.state = state
        assert engine.tick() is False
        assert storage.data == {}

    def test_canvas_error_is_swallowed(self, engine, editor, storage):
        editor.state.active_canvas = MagicMock()
        editor.state.active_canvas.to_json.side_effect = RuntimeError("canvas disposed")

        assert engine.tick() is False
        assert storage.data == {}

    def test_unserializable_state_is_swallowed(self, engine, editor, storage):
        editor.state.active_canvas = MagicMock()
        editor.state.active_canvas.to_json.return_value = {"handle": object()}

        assert engine.tick() is False
        assert storage.data == {}

    def test_storage_error_is_swallowed(self, engine):
        engine._storage = MagicMock()
        engine._storage.get.return_value = None
        engine._storage.set.side_effect = OSError("quota exceeded")

        assert engine.tick() is False
        assert engine.saves == 0

    def test_unreadable_previous_backup_is_overwritten(self, engine, storage):
        storage.data[backup_key("design-42")] = "{not json"

        assert engine.tick() is True
        assert json.loads(storage.data[backup_key("design-42")])["designId"] == "design-42"


class TestTimer:

    @pytest.mark.asyncio
    async def test_ticks_every_interval(self, engine, editor, scheduler, timers):
        engine.start()
        assert AUTO_SAVE_TIMER in timers

        await scheduler.advance(29)
        assert engine.saves == 0

        await scheduler.advance(1)
        assert engine.saves == 1

        editor.state.active_canvas.objects.append({"type": "text"})
        await scheduler.advance(30)
        assert engine.saves == 2

    def test_restart_replaces_timer(self, engine, scheduler):
        engine.start()
        engine.start()
        assert len(scheduler.active_periodic_handles()) == 1

    def test_stop_cancels_timer(self, engine, timers):
        engine.start()
        engine.stop()
        assert AUTO_SAVE_TIMER not in timers
