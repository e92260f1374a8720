import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Response, APIRouter
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from algorithms.weight_converter import WeightConverter
from app_context import AppContext
from config import APP_VERSION
from db import UNCHANGED
from errors import (
    ProgressBuddyError,
    InvalidArgument,
    DecodingError,
    NotFound,
    ConfigurationError,
    NetworkError,
)
from exercise_library import primary_metrics
from logger import setup_logger

logger = setup_logger(__name__)


def _http_error(e: ProgressBuddyError) -> HTTPException:
    if isinstance(e, (InvalidArgument, DecodingError)):
        status = 400
    elif isinstance(e, NotFound):
        status = 404
    elif isinstance(e, ConfigurationError):
        status = 503
    elif isinstance(e, NetworkError):
        status = 502
    else:
        logger.error("request failed: %s", e)
        status = 500
    return HTTPException(status_code=status, detail=str(e))


class WorkoutCreate(BaseModel):
    name: str
    date: Optional[datetime.datetime] = None
    duration: int = 0
    notes: Optional[str] = None


class WorkoutUpdate(BaseModel):
    name: Optional[str] = None
    date: Optional[datetime.datetime] = None
    duration: Optional[int] = None
    notes: Optional[str] = None


class ExerciseCreate(BaseModel):
    name: str
    exercise_type: str
    sets: int = 0
    reps: int = 0
    weight: float = 0.0
    duration: int = 0
    distance: float = 0.0
    calories: int = 0
    hold_time: int = 0
    notes: Optional[str] = None
    unit: Optional[str] = None
    register_custom: bool = False


class ExerciseUpdate(BaseModel):
    name: Optional[str] = None
    exercise_type: Optional[str] = None
    sets: Optional[int] = None
    reps: Optional[int] = None
    weight: Optional[float] = None
    duration: Optional[int] = None
    distance: Optional[float] = None
    calories: Optional[int] = None
    hold_time: Optional[int] = None
    notes: Optional[str] = None
    unit: Optional[str] = None


class SettingsUpdate(BaseModel):
    weight_unit: Optional[str] = None
    theme: Optional[str] = None
    calendar_color: Optional[str] = None
    backup_identifier: Optional[str] = None


class FirebaseCredentials(BaseModel):
    api_key: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    app_id: str = Field(min_length=1)
    sender_id: str = Field(min_length=1)


class ProgressBuddyAPI:
    """Provides REST endpoints over the workout data core."""

    def __init__(self, context: AppContext | None = None, **kwargs) -> None:
        self.context = context or AppContext(**kwargs)
        self.workouts = self.context.workouts
        self.settings = self.context.settings
        self.app = FastAPI(
            title="ProgressBuddy API",
            description="REST API for workout logging, widgets and backups",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _unit(self, unit: str | None = None) -> str:
        unit = unit or self.settings.weight_unit()
        WeightConverter.check_unit(unit)
        return unit

    def _present_exercise(self, exercise: dict, unit: str) -> dict:
        out = dict(exercise)
        out["weight"] = WeightConverter.to_display(exercise["weight"], unit)
        out["weight_unit"] = unit
        out["summary"] = primary_metrics(exercise, unit)
        return out

    def _present_workout(self, workout: dict, unit: str) -> dict:
        out = dict(workout)
        out["exercises"] = [
            self._present_exercise(ex, unit) for ex in workout.get("exercises", [])
        ]
        return out

    def _setup_routes(self) -> None:
        workouts_router = APIRouter(prefix="/workouts", tags=["Workouts"])
        exercises_router = APIRouter(prefix="/exercises", tags=["Exercises"])
        backup_router = APIRouter(prefix="/backup", tags=["Backup"])
        widget_router = APIRouter(prefix="/widget", tags=["Widget"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.context.workout_repo.fetch_dates()
                return {"status": "ok", "version": APP_VERSION}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @workouts_router.get("")
        def list_workouts(unit: str = None):
            try:
                unit = self._unit(unit)
                return [
                    self._present_workout(w, unit)
                    for w in self.workouts.list_workouts()
                ]
            except ProgressBuddyError as e:
                raise _http_error(e)

        @workouts_router.post("")
        def create_workout(body: WorkoutCreate):
            try:
                workout = self.workouts.create_workout(
                    body.name, body.date, body.duration, body.notes
                )
                return {"id": workout["id"]}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @workouts_router.get("/{workout_id}")
        def get_workout(workout_id: str, unit: str = None):
            try:
                return self._present_workout(
                    self.workouts.get_workout(workout_id), self._unit(unit)
                )
            except ProgressBuddyError as e:
                raise _http_error(e)

        @workouts_router.patch("/{workout_id}")
        def update_workout(workout_id: str, body: WorkoutUpdate):
            fields = {
                k: getattr(body, k) if k in body.model_fields_set else UNCHANGED
                for k in ("name", "date", "duration", "notes")
            }
            try:
                self.workouts.update_workout(workout_id, **fields)
                return {"status": "updated"}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @workouts_router.delete("/{workout_id}")
        def delete_workout(workout_id: str):
            try:
                self.workouts.delete_workout(workout_id)
                return {"status": "deleted"}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @workouts_router.post("/{workout_id}/duplicate")
        def duplicate_workout(workout_id: str):
            try:
                return {"id": self.workouts.duplicate_workout(workout_id)["id"]}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @workouts_router.get("/{workout_id}/exercises")
        def list_exercises(workout_id: str, unit: str = None):
            try:
                unit = self._unit(unit)
                workout = self.workouts.get_workout(workout_id)
                return [self._present_exercise(ex, unit) for ex in workout["exercises"]]
            except ProgressBuddyError as e:
                raise _http_error(e)

        @workouts_router.post("/{workout_id}/exercises")
        def add_exercise(workout_id: str, body: ExerciseCreate):
            try:
                unit = self._unit(body.unit)
                exercise = self.workouts.create_exercise(
                    workout_id,
                    body.name,
                    body.exercise_type,
                    sets=body.sets,
                    reps=body.reps,
                    weight=WeightConverter.to_kg(body.weight, unit),
                    duration=body.duration,
                    distance=body.distance,
                    calories=body.calories,
                    hold_time=body.hold_time,
                    notes=body.notes,
                    register_custom=body.register_custom,
                )
                return {"id": exercise["id"], "order": exercise["order"]}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @exercises_router.get("/{exercise_id}")
        def get_exercise(exercise_id: str, unit: str = None):
            try:
                return self._present_exercise(
                    self.workouts.get_exercise(exercise_id), self._unit(unit)
                )
            except ProgressBuddyError as e:
                raise _http_error(e)

        @exercises_router.patch("/{exercise_id}")
        def update_exercise(exercise_id: str, body: ExerciseUpdate):
            fields = {
                k: getattr(body, k)
                for k in body.model_fields_set
                if k != "unit"
            }
            try:
                if fields.get("weight") is not None:
                    fields["weight"] = WeightConverter.to_kg(
                        fields["weight"], self._unit(body.unit)
                    )
                self.workouts.update_exercise(exercise_id, **fields)
                return {"status": "updated"}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @exercises_router.delete("/{exercise_id}")
        def delete_exercise(exercise_id: str):
            try:
                self.workouts.delete_exercise(exercise_id)
                return {"status": "deleted"}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @exercises_router.post("/{exercise_id}/duplicate")
        def duplicate_exercise(exercise_id: str, workout_id: str = None):
            try:
                exercise = self.workouts.duplicate_exercise(exercise_id, workout_id)
                return {"id": exercise["id"], "order": exercise["order"]}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @self.app.get("/progress")
        def progress(name: str, days: int = 90, unit: str = None):
            try:
                unit = self._unit(unit)
                series = self.workouts.progress_series(name, days)
                for point in series:
                    point["weight"] = WeightConverter.to_display(point["weight"], unit)
                return series
            except ProgressBuddyError as e:
                raise _http_error(e)

        @self.app.get("/calendar")
        def calendar(counts: bool = False):
            try:
                if counts:
                    return self.workouts.workout_counts()
                return self.workouts.workout_dates()
            except ProgressBuddyError as e:
                raise _http_error(e)

        @self.app.get("/exercise_names")
        def exercise_names():
            try:
                return self.workouts.exercise_names()
            except ProgressBuddyError as e:
                raise _http_error(e)

        @self.app.get("/library/{exercise_type}")
        def library(exercise_type: str):
            try:
                return self.workouts.exercise_library(exercise_type)
            except ProgressBuddyError as e:
                raise _http_error(e)

        @self.app.get("/settings")
        def get_settings():
            data = self.settings.all_settings()
            data.pop("firebase_api_key", None)
            return data

        @self.app.put("/settings")
        def update_settings(body: SettingsUpdate):
            values = body.model_dump(exclude_none=True)
            try:
                self.settings.update(**values)
                return {"status": "updated"}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @self.app.put("/settings/firebase")
        def update_firebase(body: FirebaseCredentials):
            try:
                self.settings.set_firebase_credentials(
                    body.api_key, body.project_id, body.app_id, body.sender_id
                )
                return {"status": "updated"}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @self.app.get("/sync/status")
        def sync_status():
            return {
                "has_unsynced_changes": self.settings.is_dirty(),
                "configured": self.context.cloud.is_configured(),
                "identifier": self.context.cloud.saved_identifier(),
            }

        @backup_router.get("/export")
        def export_backup():
            try:
                return Response(
                    self.context.backup.export(), media_type="application/json"
                )
            except ProgressBuddyError as e:
                raise _http_error(e)

        @backup_router.post("/restore")
        async def restore_backup(request: Request):
            document = await request.body()
            try:
                count = await run_in_threadpool(self.context.backup.restore, document)
                return {"restored": count}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @backup_router.post("/upload")
        def upload_backup(identifier: str = None):
            try:
                self.context.cloud.backup(identifier)
                return {"status": "uploaded"}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @backup_router.get("/download")
        def download_backup(identifier: str = None):
            try:
                document = self.context.cloud.download(
                    identifier or self.context.cloud.saved_identifier()
                )
                return Response(document, media_type="application/json")
            except ProgressBuddyError as e:
                raise _http_error(e)

        @backup_router.post("/download")
        def restore_from_cloud(identifier: str = None):
            try:
                return {"restored": self.context.cloud.restore_from_cloud(identifier)}
            except ProgressBuddyError as e:
                raise _http_error(e)

        @widget_router.get("/calendar")
        async def calendar_widget(month: str = None):
            if month:
                try:
                    reference = datetime.datetime.strptime(month, "%Y-%m").date()
                except ValueError:
                    raise HTTPException(status_code=400, detail="month must be YYYY-MM")
                return await self.context.calendar_widget.entry(reference)
            return await self.context.calendar_widget.timeline()

        @widget_router.get("/quote")
        async def quote_widget():
            return await self.context.quote_widget.timeline()

        self.app.include_router(workouts_router)
        self.app.include_router(exercises_router)
        self.app.include_router(backup_router)
        self.app.include_router(widget_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(ProgressBuddyAPI().app)
