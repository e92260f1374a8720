import datetime

from config import SharedDefaults
from db import WorkoutRepository
from logger import setup_logger

logger = setup_logger(__name__)

WORKOUT_DATES_KEY = "workout_dates"
RELOAD_KEY = "widget_reload_requested_at"


class WidgetCenter:
    """Records reload requests the widget process checks on refresh."""

    def __init__(self, defaults: SharedDefaults) -> None:
        self.defaults = defaults

    def reload_all_timelines(self) -> None:
        self.defaults.update(
            **{RELOAD_KEY: datetime.datetime.now().replace(microsecond=0).isoformat()}
        )

    def last_reload_request(self) -> datetime.datetime | None:
        value = self.defaults.get(RELOAD_KEY)
        if not value:
            return None
        return datetime.datetime.fromisoformat(str(value))


class SnapshotPublisher:
    """Write the derived widget snapshot after a committed mutation."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        defaults: SharedDefaults,
        widget_center: WidgetCenter | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.defaults = defaults
        self.widget_center = widget_center or WidgetCenter(defaults)

    def snapshot(self) -> dict:
        return {WORKOUT_DATES_KEY: self.workouts.fetch_dates()}

    def publish(self) -> bool:
        """Publish the snapshot and request a widget reload.

        The triggering mutation is already committed, so failures are logged
        and reported through the return value only.
        """
        try:
            self.defaults.update(**self.snapshot())
            self.widget_center.reload_all_timelines()
        except Exception as e:
            logger.warning("widget snapshot publication failed: %s", e)
            return False
        logger.debug("published widget snapshot to %s", self.defaults.path)
        return True

    def published_dates(self) -> list[str]:
        return list(self.defaults.get(WORKOUT_DATES_KEY, []) or [])
