import datetime
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import SharedDefaults
from db import WorkoutRepository, ExerciseRepository, SettingsRepository
from publication_service import SnapshotPublisher, WORKOUT_DATES_KEY, RELOAD_KEY
from workout_service import WorkoutService


def _service(tmp_path, container):
    db_path = str(tmp_path / "workout.db")
    workouts = WorkoutRepository(db_path)
    publisher = SnapshotPublisher(workouts, SharedDefaults(container))
    service = WorkoutService(
        workouts,
        ExerciseRepository(db_path),
        SettingsRepository(db_path, str(tmp_path / "settings.yaml")),
        publisher,
    )
    return service, publisher


def test_publish_writes_sorted_unique_dates(tmp_path):
    service, publisher = _service(tmp_path, str(tmp_path))
    service.create_workout("B", datetime.datetime(2024, 6, 2, 18, 0))
    service.create_workout("A", datetime.datetime(2024, 6, 2, 7, 0))
    service.create_workout("C", datetime.datetime(2024, 5, 20, 7, 0))
    data = SharedDefaults(str(tmp_path)).load()
    assert data[WORKOUT_DATES_KEY] == ["2024-05-20", "2024-06-02"]
    assert RELOAD_KEY in data
    assert publisher.published_dates() == ["2024-05-20", "2024-06-02"]


def test_publish_keeps_unrelated_keys(tmp_path):
    defaults = SharedDefaults(str(tmp_path))
    defaults.update(quote_text="Keep going", quote_date="2024-06-02")
    service, _ = _service(tmp_path, str(tmp_path))
    service.create_workout("A", datetime.datetime(2024, 6, 2, 7, 0))
    assert defaults.get("quote_text") == "Keep going"


def test_publication_failure_does_not_fail_mutation(tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")
    service, publisher = _service(tmp_path, str(blocker))
    assert publisher.publish() is False
    workout = service.create_workout("Push", datetime.datetime(2024, 6, 2, 7, 0))
    assert [w["id"] for w in service.list_workouts()] == [workout["id"]]
    assert service.settings.is_dirty() is True


def test_shared_file_is_replaced_atomically(tmp_path):
    defaults = SharedDefaults(str(tmp_path))
    defaults.update(a=1)
    defaults.update(b=2)
    assert defaults.load() == {"a": 1, "b": 2}
    leftovers = [p for p in os.listdir(tmp_path) if p.endswith(".tmp")]
    assert leftovers == []
