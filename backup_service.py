import datetime
import json
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from db import SQLITE_MAX_INTEGER
from errors import EncodingError, DecodingError
from exercise_library import EXERCISE_TYPES, STRENGTH
from logger import setup_logger
from workout_service import WorkoutService

logger = setup_logger(__name__)


class BackupExercise(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    exercise_type: str = Field(STRENGTH, alias="type")
    sets: int = Field(0, ge=0, le=SQLITE_MAX_INTEGER)
    reps: int = Field(0, ge=0, le=SQLITE_MAX_INTEGER)
    weight: float = Field(0.0, ge=0)
    duration: int = Field(0, ge=0, le=SQLITE_MAX_INTEGER)
    distance: float = Field(0.0, ge=0)
    calories: int = Field(0, ge=0, le=SQLITE_MAX_INTEGER)
    hold_time: int = Field(0, ge=0, le=SQLITE_MAX_INTEGER, alias="holdTime")
    notes: Optional[str] = None
    order: int = Field(0, le=SQLITE_MAX_INTEGER)

    @field_validator("exercise_type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        return value if value in EXERCISE_TYPES else STRENGTH


class BackupWorkout(BaseModel):
    name: str
    date: datetime.datetime
    duration: int = Field(0, ge=0, le=SQLITE_MAX_INTEGER)
    notes: Optional[str] = None
    exercises: List[BackupExercise] = []


BackupDocument = TypeAdapter(List[BackupWorkout])


def encode_date(stored: str) -> str:
    """Convert a stored local timestamp to ISO-8601 UTC with a ``Z`` suffix."""
    value = datetime.datetime.fromisoformat(stored)
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class BackupService:
    """Serialize the whole store to a JSON document and restore from one."""

    def __init__(self, workout_service: WorkoutService) -> None:
        self.workouts = workout_service

    def export(self) -> str:
        try:
            data = [
                {
                    "name": w["name"],
                    "date": encode_date(w["date"]),
                    "duration": w["duration"],
                    "notes": w["notes"],
                    "exercises": [
                        {
                            "name": ex["name"],
                            "type": ex["exercise_type"],
                            "sets": ex["sets"],
                            "reps": ex["reps"],
                            "weight": ex["weight"],
                            "duration": ex["duration"],
                            "distance": ex["distance"],
                            "calories": ex["calories"],
                            "holdTime": ex["hold_time"],
                            "notes": ex["notes"],
                            "order": ex["order"],
                        }
                        for ex in w["exercises"]
                    ],
                }
                for w in self.workouts.list_workouts()
            ]
            return json.dumps(data, allow_nan=False)
        except (TypeError, ValueError, KeyError) as e:
            raise EncodingError(f"could not encode backup: {e}") from e

    def parse(self, document: str | bytes) -> List[BackupWorkout]:
        try:
            return BackupDocument.validate_json(document)
        except ValidationError as e:
            raise DecodingError(f"invalid backup document: {e}") from e

    def restore(self, document: str | bytes) -> int:
        """Replace every local workout with the content of ``document``.

        Nothing is deleted unless the whole document parses. The unsynced
        changes flag is left as it was.
        """
        parsed = self.parse(document)
        rows = [
            {
                "name": w.name,
                "date": w.date,
                "duration": w.duration,
                "notes": w.notes,
                "exercises": [ex.model_dump() for ex in w.exercises],
            }
            for w in parsed
        ]
        count = self.workouts.workout_repo.replace_all(rows)
        logger.info("restored %d workouts from backup", count)
        self.workouts.publisher.publish()
        self.workouts.list_workouts()
        return count
