import datetime
import os
from typing import Callable

import requests

from backup_service import BackupService
from cloud_service import CloudBackupService, FirestoreClient
from config import DB_FILENAME, SharedDefaults, shared_container_path
from db import (
    WorkoutRepository,
    ExerciseRepository,
    CustomExerciseRepository,
    SettingsRepository,
)
from logger import setup_logger
from publication_service import SnapshotPublisher, WidgetCenter
from quote_service import QuoteService
from widget_service import CalendarWidgetProvider, QuoteWidgetProvider
from workout_service import WorkoutService

logger = setup_logger(__name__)


class AppContext:
    """Builds every repository and service once for the main process."""

    def __init__(
        self,
        container: str | None = None,
        yaml_path: str | None = None,
        session: requests.Session | None = None,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
        widget_timeout: float = 5.0,
    ) -> None:
        self.container = container or shared_container_path()
        self.db_path = os.path.join(self.container, DB_FILENAME)
        yaml_path = yaml_path or os.path.join(self.container, "settings.yaml")
        self.settings = SettingsRepository(self.db_path, yaml_path)
        self.workout_repo = WorkoutRepository(self.db_path)
        self.exercise_repo = ExerciseRepository(self.db_path)
        self.custom_exercises = CustomExerciseRepository(self.db_path)
        self.defaults = SharedDefaults(self.container)
        self.widget_center = WidgetCenter(self.defaults)
        self.publisher = SnapshotPublisher(
            self.workout_repo, self.defaults, self.widget_center
        )
        self.workouts = WorkoutService(
            self.workout_repo,
            self.exercise_repo,
            self.settings,
            self.publisher,
            custom_repo=self.custom_exercises,
            clock=clock,
        )
        self.backup = BackupService(self.workouts)
        self.firestore = FirestoreClient(self.settings, session=session)
        self.cloud = CloudBackupService(self.firestore, self.settings, self.backup)
        self.quotes = QuoteService(self.defaults, session=session)
        self.calendar_widget = CalendarWidgetProvider(
            self.container, timeout=widget_timeout, clock=clock
        )
        self.quote_widget = QuoteWidgetProvider(self.quotes, clock=clock)
        self.workouts.list_workouts()
        logger.info(
            "opened store %s (unsynced changes: %s)",
            self.db_path,
            self.settings.is_dirty(),
        )

    def weight_unit(self) -> str:
        return self.settings.weight_unit()
