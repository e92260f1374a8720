import datetime
import json
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from app_context import AppContext
from errors import DecodingError
from exercise_library import STRENGTH, CARDIO, FLEXIBILITY
from publication_service import WORKOUT_DATES_KEY

NOW = datetime.datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def ctx(tmp_path):
    return AppContext(container=str(tmp_path), clock=lambda: NOW)


def _populate(ctx: AppContext) -> None:
    service = ctx.workouts
    push = service.create_workout(
        "Push", datetime.datetime(2024, 6, 10, 8, 30), 60, "heavy day"
    )["id"]
    service.create_exercise(push, "Bench Press", STRENGTH, 5, 5, 82.5, notes="paused")
    service.create_exercise(push, "Hip Flexor Stretch", FLEXIBILITY, sets=2, duration=4, hold_time=45)
    run = service.create_workout("Run", datetime.datetime(2024, 6, 12, 7, 0), 35)["id"]
    service.create_exercise(run, "Running", CARDIO, duration=35, distance=6.2, calories=410)


def _observable(ctx: AppContext) -> list:
    state = []
    for w in ctx.workouts.list_workouts():
        exercises = [
            {k: v for k, v in ex.items() if k not in ("id", "workout_id")}
            for ex in w["exercises"]
        ]
        state.append((w["name"], w["date"], w["duration"], w["notes"], exercises))
    return state


def test_export_wire_format(ctx):
    _populate(ctx)
    data = json.loads(ctx.backup.export())
    assert [w["name"] for w in data] == ["Run", "Push"]
    push = data[1]
    assert push["date"].endswith("Z")
    assert push["notes"] == "heavy day"
    assert data[0]["notes"] is None
    bench, stretch = push["exercises"]
    assert set(bench) == {
        "name", "type", "sets", "reps", "weight", "duration",
        "distance", "calories", "holdTime", "notes", "order",
    }
    assert bench["type"] == STRENGTH
    assert bench["weight"] == 82.5
    assert stretch["holdTime"] == 45
    assert stretch["order"] == 1


def test_export_of_empty_store(ctx):
    assert json.loads(ctx.backup.export()) == []


def test_export_restore_round_trip(ctx):
    _populate(ctx)
    before = _observable(ctx)
    document = ctx.backup.export()
    assert ctx.backup.restore(document) == 2
    assert _observable(ctx) == before


def test_restore_replaces_existing_workouts(ctx):
    _populate(ctx)
    document = ctx.backup.export()
    ctx.workouts.create_workout("Extra", NOW)
    ctx.backup.restore(document)
    assert "Extra" not in [w["name"] for w in ctx.workouts.workouts]
    assert len(ctx.workouts.workouts) == 2


@pytest.mark.parametrize(
    "document",
    [
        "not json",
        "{}",
        '[{"name": "ok", "date": "2024-01-01T00:00:00Z", "duration": 1, "exercises": []}, {"date": "2024-01-02"}]',
        '[{"name": "bad", "date": "yesterday", "duration": 1, "exercises": []}]',
        '[{"name": "neg", "date": "2024-01-01T00:00:00Z", "duration": -3, "exercises": []}]',
        '[{"name": "huge", "date": "2024-01-01T00:00:00Z", "duration": 1000000000000000000000000000000, "exercises": []}]',
        '[{"name": "huge", "date": "2024-01-01T00:00:00Z", "exercises": [{"name": "Squat", "reps": 9223372036854775808}]}]',
    ],
)
def test_decode_failure_leaves_store_untouched(ctx, document):
    _populate(ctx)
    before = _observable(ctx)
    with pytest.raises(DecodingError):
        ctx.backup.restore(document)
    assert _observable(ctx) == before


def test_restore_does_not_change_dirty_flag(ctx):
    _populate(ctx)
    document = ctx.backup.export()
    ctx.settings.mark_clean()
    ctx.backup.restore(document)
    assert ctx.settings.is_dirty() is False
    ctx.settings.mark_dirty()
    ctx.backup.restore(document)
    assert ctx.settings.is_dirty() is True


def test_restore_republishes_snapshot(ctx):
    document = json.dumps(
        [{"name": "Imported", "date": "2024-03-02T10:00:00", "duration": 20, "notes": None, "exercises": []}]
    )
    ctx.backup.restore(document)
    assert ctx.defaults.get(WORKOUT_DATES_KEY) == ["2024-03-02"]


def test_restore_fills_defaults_and_unknown_types(ctx):
    document = json.dumps(
        [
            {
                "name": "Legacy",
                "date": "2024-03-02T10:00:00",
                "duration": 20,
                "exercises": [
                    {"name": "Sled", "type": "Strongman", "sets": 3},
                    {"name": "Rower", "type": CARDIO, "duration": 10, "order": 1},
                ],
            }
        ]
    )
    ctx.backup.restore(document)
    workout = ctx.workouts.workouts[0]
    assert workout["notes"] is None
    sled, rower = workout["exercises"]
    assert sled["exercise_type"] == STRENGTH
    assert sled["sets"] == 3
    assert sled["reps"] == 0
    assert sled["hold_time"] == 0
    assert rower["exercise_type"] == CARDIO
    assert rower["order"] == 1
