import asyncio
import datetime
import os
import sys
import time

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from app_context import AppContext
from config import SharedDefaults
from db import AsyncWorkoutDateReader
from publication_service import WORKOUT_DATES_KEY
from widget_service import CalendarWidgetProvider, month_bounds, start_of_next_day

NOW = datetime.datetime(2024, 6, 15, 12, 0, 0)


class SlowReader(AsyncWorkoutDateReader):
    async def fetch_dates(self, start_date, end_date):
        await asyncio.sleep(10)
        return ["2024-06-01"]


def _populated_container(tmp_path) -> str:
    ctx = AppContext(container=str(tmp_path), clock=lambda: NOW)
    for date in (
        datetime.datetime(2024, 5, 31, 23, 0),
        datetime.datetime(2024, 6, 3, 7, 0),
        datetime.datetime(2024, 6, 15, 8, 0),
        datetime.datetime(2024, 6, 15, 18, 0),
        datetime.datetime(2024, 7, 1, 6, 0),
    ):
        ctx.workouts.create_workout("Session", date)
    return ctx.container


def test_month_bounds():
    assert month_bounds(datetime.date(2024, 12, 9)) == (
        datetime.date(2024, 12, 1),
        datetime.date(2025, 1, 1),
    )
    assert month_bounds(datetime.date(2024, 2, 29)) == (
        datetime.date(2024, 2, 1),
        datetime.date(2024, 3, 1),
    )


def test_start_of_next_day():
    assert start_of_next_day(NOW) == datetime.datetime(2024, 6, 16)


@pytest.mark.asyncio
async def test_reads_month_days_from_store(tmp_path):
    container = _populated_container(tmp_path)
    provider = CalendarWidgetProvider(container, clock=lambda: NOW)
    entry = await provider.entry(datetime.date(2024, 6, 20))
    assert entry == {"date": "2024-06-20", "month": "2024-06", "workout_days": [3, 15]}


@pytest.mark.asyncio
async def test_store_is_read_before_published_snapshot(tmp_path):
    container = _populated_container(tmp_path)
    SharedDefaults(container).update(**{WORKOUT_DATES_KEY: ["2024-06-28"]})
    provider = CalendarWidgetProvider(container, clock=lambda: NOW)
    assert await provider.workout_days(NOW) == {3, 15}


@pytest.mark.asyncio
async def test_unreachable_store_returns_empty_days(tmp_path):
    provider = CalendarWidgetProvider(str(tmp_path / "missing"), clock=lambda: NOW)
    entry = await provider.timeline()
    assert entry["workout_days"] == []
    assert entry["next_refresh"] == "2024-06-16T00:00:00"
    assert not (tmp_path / "missing" / "workout.db").exists()


@pytest.mark.asyncio
async def test_falls_back_to_published_dates(tmp_path):
    SharedDefaults(str(tmp_path)).update(
        **{WORKOUT_DATES_KEY: ["2024-05-30", "2024-06-02", "2024-06-09", "garbage"]}
    )
    provider = CalendarWidgetProvider(str(tmp_path), clock=lambda: NOW)
    assert await provider.workout_days(NOW) == {2, 9}


@pytest.mark.asyncio
async def test_slow_store_times_out(tmp_path):
    provider = CalendarWidgetProvider(str(tmp_path), timeout=0.2, clock=lambda: NOW)
    provider.reader = SlowReader(str(tmp_path / "workout.db"), 0.2)
    started = time.monotonic()
    entry = await provider.snapshot()
    assert entry["workout_days"] == []
    assert time.monotonic() - started < 2


@pytest.mark.asyncio
async def test_corrupt_snapshot_degrades(tmp_path):
    (tmp_path / SharedDefaults.FILENAME).write_text("{unbalanced: [", encoding="utf-8")
    provider = CalendarWidgetProvider(str(tmp_path), clock=lambda: NOW)
    entry = await provider.placeholder()
    assert entry["workout_days"] == []


def test_render_without_event_loop(tmp_path):
    container = _populated_container(tmp_path)
    provider = CalendarWidgetProvider(container, clock=lambda: NOW)
    entry = provider.render()
    assert entry["month"] == "2024-06"
    assert entry["workout_days"] == [3, 15]


def test_needs_reload_after_publication(tmp_path):
    provider = CalendarWidgetProvider(str(tmp_path), clock=lambda: NOW)
    assert provider.needs_reload(None) is False
    _populated_container(tmp_path)
    assert provider.needs_reload(None) is True
    assert provider.needs_reload(datetime.datetime.now() + datetime.timedelta(days=1)) is False
    assert provider.needs_reload(datetime.datetime.now() - datetime.timedelta(days=1)) is True
