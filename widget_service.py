"""Widget-side timeline providers.

These run in the widget process and never write to the relational store.
Every entry point degrades to an empty or default render instead of raising.
"""

import asyncio
import datetime
import os
from typing import Callable

import yaml

from config import DB_FILENAME, SharedDefaults
from db import AsyncWorkoutDateReader
from errors import StorageError
from logger import setup_logger
from publication_service import WORKOUT_DATES_KEY, WidgetCenter
from quote_service import DEFAULT_QUOTE, QuoteService

logger = setup_logger(__name__)

DEFAULT_TIMEOUT = 5.0


def month_bounds(reference: datetime.date) -> tuple[datetime.date, datetime.date]:
    """Return the first day of the month and the first day of the next one."""
    start = reference.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def start_of_next_day(now: datetime.datetime) -> datetime.datetime:
    tomorrow = now.date() + datetime.timedelta(days=1)
    return datetime.datetime.combine(tomorrow, datetime.time())


def _as_date(value: datetime.date | datetime.datetime) -> datetime.date:
    return value.date() if isinstance(value, datetime.datetime) else value


class TimelineProvider:
    """Placeholder, snapshot and timeline triggers with a daily cadence."""

    def __init__(self, clock: Callable[[], datetime.datetime] = datetime.datetime.now):
        self.clock = clock

    async def entry(self, reference: datetime.date) -> dict:
        raise NotImplementedError

    async def placeholder(self) -> dict:
        return await self.entry(self.clock().date())

    async def snapshot(self) -> dict:
        return await self.entry(self.clock().date())

    async def timeline(self) -> dict:
        now = self.clock()
        entry = await self.entry(now.date())
        entry["next_refresh"] = start_of_next_day(now).isoformat()
        return entry

    def render(self) -> dict:
        """Synchronous timeline refresh for hosts without an event loop."""
        return asyncio.run(self.timeline())


class CalendarWidgetProvider(TimelineProvider):
    """Month calendar of the days that have at least one workout."""

    def __init__(
        self,
        container: str,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
    ) -> None:
        super().__init__(clock)
        self.timeout = timeout
        self.defaults = SharedDefaults(container)
        self.widget_center = WidgetCenter(self.defaults)
        self.reader = AsyncWorkoutDateReader(
            os.path.join(container, DB_FILENAME), timeout
        )

    def _published_dates(self) -> list[str]:
        try:
            dates = self.defaults.get(WORKOUT_DATES_KEY, []) or []
        except (OSError, yaml.YAMLError) as e:
            logger.warning("cannot read published workout dates: %s", e)
            return []
        return [str(d) for d in dates] if isinstance(dates, list) else []

    async def _store_dates(self, start: datetime.date, end: datetime.date) -> list[str]:
        return await asyncio.wait_for(
            self.reader.fetch_dates(start.isoformat(), end.isoformat()),
            timeout=self.timeout,
        )

    async def workout_days(self, reference: datetime.date | datetime.datetime) -> set[int]:
        """Days of ``reference``'s month that have a workout."""
        start, end = month_bounds(_as_date(reference))
        try:
            dates = await self._store_dates(start, end)
        except (StorageError, asyncio.TimeoutError) as e:
            logger.warning("shared store unavailable, using published dates: %s", e)
            dates = self._published_dates()
        days = set()
        for value in dates:
            try:
                day = datetime.date.fromisoformat(str(value)[:10])
            except ValueError:
                continue
            if start <= day < end:
                days.add(day.day)
        return days

    async def entry(self, reference: datetime.date) -> dict:
        reference = _as_date(reference)
        try:
            days = await self.workout_days(reference)
        except Exception as e:
            logger.warning("calendar widget render failed: %s", e)
            days = set()
        return {
            "date": reference.isoformat(),
            "month": reference.strftime("%Y-%m"),
            "workout_days": sorted(days),
        }

    def needs_reload(self, last_rendered_at: datetime.datetime | None) -> bool:
        """Whether the main process asked for a reload after the last render."""
        try:
            requested = self.widget_center.last_reload_request()
        except (OSError, ValueError, yaml.YAMLError):
            return False
        if requested is None:
            return False
        return last_rendered_at is None or requested > last_rendered_at


class QuoteWidgetProvider(TimelineProvider):
    """Daily motivational quote; independent of the relational store."""

    def __init__(
        self,
        quotes: QuoteService,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
    ) -> None:
        super().__init__(clock)
        self.quotes = quotes

    async def entry(self, reference: datetime.date) -> dict:
        reference = _as_date(reference)
        try:
            quote = await asyncio.to_thread(self.quotes.daily_quote, reference)
        except Exception as e:
            logger.warning("quote widget render failed: %s", e)
            quote = dict(DEFAULT_QUOTE)
        return {"date": reference.isoformat(), **quote}
