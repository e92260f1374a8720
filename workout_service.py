from __future__ import annotations

import datetime
from typing import Callable

from db import (
    UNCHANGED,
    WorkoutRepository,
    ExerciseRepository,
    CustomExerciseRepository,
    SettingsRepository,
    to_iso,
)
from exercise_library import BUILTIN_EXERCISES
from logger import setup_logger
from publication_service import SnapshotPublisher

logger = setup_logger(__name__)


class WorkoutService:
    """Entity store for workouts and their exercises.

    Every committed mutation marks the store as having unsynced changes,
    republishes the widget snapshot and refreshes :attr:`workouts`.
    """

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        exercise_repo: ExerciseRepository,
        settings_repo: SettingsRepository,
        publisher: SnapshotPublisher,
        custom_repo: CustomExerciseRepository | None = None,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
    ) -> None:
        self.workout_repo = workout_repo
        self.exercises = exercise_repo
        self.settings = settings_repo
        self.publisher = publisher
        self.custom = custom_repo
        self.clock = clock
        self.workouts: list[dict] = []
        self._subscribers: list[Callable[[list[dict]], None]] = []

    def subscribe(self, callback: Callable[[list[dict]], None]) -> Callable[[], None]:
        """Register ``callback`` for cache refreshes and return an unsubscriber."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self.workouts)

    def _committed(self) -> None:
        self.settings.mark_dirty()
        self.publisher.publish()
        self.list_workouts()

    def list_workouts(self) -> list[dict]:
        """Return all workouts newest first, each with its ordered exercises."""
        rows = self.workout_repo.fetch_all_workouts()
        by_workout: dict[str, list[dict]] = {}
        for ex in self.exercises.fetch_all_exercises():
            by_workout.setdefault(ex["workout_id"], []).append(ex)
        for workout in rows:
            workout["exercises"] = by_workout.get(workout["id"], [])
        self.workouts = rows
        self._notify()
        return rows

    def get_workout(self, workout_id: str) -> dict:
        workout = self.workout_repo.fetch_detail(workout_id)
        workout["exercises"] = self.exercises.fetch_for_workout(workout_id)
        return workout

    def get_exercise(self, exercise_id: str) -> dict:
        return self.exercises.fetch_detail(exercise_id)

    def create_workout(
        self,
        name: str,
        date: datetime.datetime | str | None = None,
        duration: int = 0,
        notes: str | None = None,
    ) -> dict:
        workout_id = self.workout_repo.create(
            name, date if date is not None else self.clock(), duration, notes
        )
        logger.info("created workout %s", workout_id)
        self._committed()
        return self.get_workout(workout_id)

    def update_workout(
        self,
        workout_id: str,
        name=UNCHANGED,
        date=UNCHANGED,
        duration=UNCHANGED,
        notes=UNCHANGED,
    ) -> dict:
        """Partially update a workout.

        Omitted arguments stay ``UNCHANGED``; ``notes=None`` or ``notes=""``
        clears the notes.
        """
        self.workout_repo.update(
            workout_id, name=name, date=date, duration=duration, notes=notes
        )
        logger.info("updated workout %s", workout_id)
        self._committed()
        return self.get_workout(workout_id)

    def delete_workout(self, workout_id: str) -> None:
        self.workout_repo.delete(workout_id)
        logger.info("deleted workout %s", workout_id)
        self._committed()

    def duplicate_workout(self, workout_id: str) -> dict:
        new_id = self.workout_repo.duplicate(workout_id, self.clock())
        logger.info("duplicated workout %s as %s", workout_id, new_id)
        self._committed()
        return self.get_workout(new_id)

    def create_exercise(
        self,
        workout_id: str,
        name: str,
        exercise_type: str,
        sets: int = 0,
        reps: int = 0,
        weight: float = 0.0,
        duration: int = 0,
        distance: float = 0.0,
        calories: int = 0,
        hold_time: int = 0,
        notes: str | None = None,
        register_custom: bool = False,
    ) -> dict:
        """Append an exercise to a workout; ``weight`` is in kilograms."""
        exercise_id = self.exercises.add(
            workout_id,
            name,
            exercise_type,
            sets,
            reps,
            weight,
            duration,
            distance,
            calories,
            hold_time,
            notes,
        )
        if register_custom and self.custom is not None:
            self.custom.add(name, exercise_type)
        logger.info("added exercise %s to workout %s", exercise_id, workout_id)
        self._committed()
        return self.exercises.fetch_detail(exercise_id)

    def update_exercise(self, exercise_id: str, **fields) -> dict:
        """Partially update an exercise; see :meth:`update_workout`."""
        self.exercises.update(exercise_id, **fields)
        logger.info("updated exercise %s", exercise_id)
        self._committed()
        return self.exercises.fetch_detail(exercise_id)

    def delete_exercise(self, exercise_id: str) -> None:
        self.exercises.remove(exercise_id)
        logger.info("deleted exercise %s", exercise_id)
        self._committed()

    def duplicate_exercise(
        self, exercise_id: str, target_workout_id: str | None = None
    ) -> dict:
        new_id = self.exercises.duplicate(exercise_id, target_workout_id)
        logger.info("duplicated exercise %s as %s", exercise_id, new_id)
        self._committed()
        return self.exercises.fetch_detail(new_id)

    def progress_series(self, exercise_name: str, window_days: int = 90) -> list[dict]:
        """Chart points for ``exercise_name`` within the trailing window."""
        start = to_iso(self.clock() - datetime.timedelta(days=window_days))
        series = []
        for date, ex in self.exercises.history(exercise_name, start):
            series.append(
                {
                    "date": date,
                    "workout_id": ex["workout_id"],
                    "exercise_id": ex["id"],
                    "sets": ex["sets"],
                    "reps": ex["reps"],
                    "weight": ex["weight"],
                    "duration": ex["duration"],
                    "distance": ex["distance"],
                    "calories": ex["calories"],
                    "hold_time": ex["hold_time"],
                }
            )
        return series

    def workout_dates(self) -> list[str]:
        return self.workout_repo.fetch_dates()

    def workout_counts(self) -> dict[str, int]:
        """Workouts per day, the intensity of each calendar heat-map cell."""
        return self.workout_repo.fetch_day_counts()

    def exercise_names(self) -> list[str]:
        return self.exercises.distinct_names()

    def exercise_library(self, exercise_type: str) -> list[str]:
        if self.custom is None:
            return sorted(BUILTIN_EXERCISES.get(exercise_type, []))
        return self.custom.library(exercise_type)
