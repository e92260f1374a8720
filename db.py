import sqlite3
import aiosqlite
import datetime
import os
import pathlib
import uuid
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable

from config import YamlConfig
from errors import StorageError, NotFound, InvalidArgument
from exercise_library import EXERCISE_TYPES, BUILTIN_EXERCISES, is_builtin
from logger import setup_logger
from settings_schema import validate_settings

logger = setup_logger(__name__)


class _Unchanged:
    """Marker for partial updates: the field keeps its stored value."""

    def __repr__(self) -> str:
        return "UNCHANGED"


UNCHANGED = _Unchanged()


def new_id() -> str:
    return str(uuid.uuid4())


def to_iso(value: datetime.datetime | datetime.date | str) -> str:
    """Normalize a timestamp to the naive local ISO form used in the store."""
    if isinstance(value, str):
        try:
            value = datetime.datetime.fromisoformat(value)
        except ValueError:
            raise InvalidArgument(f"invalid ISO-8601 date: {value!r}")
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime.combine(value, datetime.time())
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.replace(microsecond=0).isoformat()


WORKOUT_COLUMNS = "id, name, date, duration, notes"
EXERCISE_COLUMNS = (
    "id, workout_id, name, exercise_type, sets, reps, weight, duration,"
    " distance, calories, hold_time, notes, position"
)
MEASUREMENTS = ("sets", "reps", "weight", "duration", "distance", "calories", "hold_time")
SQLITE_MAX_INTEGER = 2**63 - 1


def _workout_row(row: Tuple) -> dict:
    wid, name, date, duration, notes = row
    return {
        "id": wid,
        "name": name,
        "date": date,
        "duration": int(duration),
        "notes": notes,
    }


def _exercise_row(row: Tuple) -> dict:
    (
        eid,
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
        position,
    ) = row
    return {
        "id": eid,
        "workout_id": workout_id,
        "name": name,
        "exercise_type": exercise_type,
        "sets": int(sets),
        "reps": int(reps),
        "weight": float(weight),
        "duration": int(duration),
        "distance": float(distance),
        "calories": int(calories),
        "hold_time": int(hold_time),
        "notes": notes,
        "order": int(position),
    }


def _check_measurements(values: dict) -> None:
    for key, val in values.items():
        if val is UNCHANGED or key not in MEASUREMENTS:
            continue
        if val is None or val < 0:
            raise InvalidArgument(f"{key} must be non-negative")


def _check_type(exercise_type: str) -> None:
    if exercise_type not in EXERCISE_TYPES:
        raise InvalidArgument(f"unknown exercise type: {exercise_type}")


def _clean_notes(notes: Optional[str]) -> Optional[str]:
    return notes or None


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workouts": (
            """CREATE TABLE workouts (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    date TEXT NOT NULL,
                    duration INTEGER NOT NULL DEFAULT 0,
                    notes TEXT
                );""",
            ["id", "name", "date", "duration", "notes"],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id TEXT PRIMARY KEY,
                    workout_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    exercise_type TEXT NOT NULL DEFAULT 'Strength Training',
                    sets INTEGER NOT NULL DEFAULT 0,
                    reps INTEGER NOT NULL DEFAULT 0,
                    weight REAL NOT NULL DEFAULT 0,
                    duration INTEGER NOT NULL DEFAULT 0,
                    distance REAL NOT NULL DEFAULT 0,
                    calories INTEGER NOT NULL DEFAULT 0,
                    hold_time INTEGER NOT NULL DEFAULT 0,
                    notes TEXT,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_id",
                "name",
                "exercise_type",
                "sets",
                "reps",
                "weight",
                "duration",
                "distance",
                "calories",
                "hold_time",
                "notes",
                "position",
            ],
        ),
        "custom_exercises": (
            """CREATE TABLE custom_exercises (
                    name TEXT NOT NULL,
                    exercise_type TEXT NOT NULL,
                    PRIMARY KEY (name, exercise_type)
                );""",
            ["name", "exercise_type"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _INDEXES = [
        "CREATE INDEX IF NOT EXISTS idx_workouts_date ON workouts(date);",
        "CREATE INDEX IF NOT EXISTS idx_exercises_workout ON exercises(workout_id, position);",
        "CREATE INDEX IF NOT EXISTS idx_exercises_name ON exercises(name);",
    ]

    _SETTING_DEFAULTS = {
        "weight_unit": "kg",
        "theme": "system",
        "calendar_color": "#007aff",
        "firebase_api_key": "",
        "firebase_project_id": "",
        "firebase_app_id": "",
        "firebase_sender_id": "",
        "backup_identifier": "",
        "has_unsynced_changes": "0",
    }

    def __init__(self, db_path: str = "workout.db", timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout
        self._ensure_schema()
        self._init_settings()

    @property
    def db_path(self) -> str:
        return self._db_path

    @contextmanager
    def _connection(self, immediate: bool = False):
        """Yield a connection committed on success and rolled back on error.

        ``immediate`` takes the write lock before the first statement so
        reads inside the block see no concurrent writer.
        """
        try:
            connection = sqlite3.connect(self._db_path, timeout=self._timeout)
        except sqlite3.Error as e:
            raise StorageError(f"cannot open {self._db_path}: {e}") from e
        try:
            connection.execute("PRAGMA foreign_keys=ON;")
            if immediate:
                connection.execute("BEGIN IMMEDIATE;")
            yield connection
            connection.commit()
        except sqlite3.Error as e:
            connection.rollback()
            raise StorageError(str(e)) from e
        except OverflowError as e:
            connection.rollback()
            raise InvalidArgument(f"value out of range: {e}") from e
        except BaseException:
            connection.rollback()
            raise
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        directory = os.path.dirname(os.path.abspath(self._db_path))
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create {directory}: {e}") from e
        with self._connection() as conn:
            # Readers in the widget process must not block the single writer.
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA foreign_keys=off;")
            conn.execute("PRAGMA legacy_alter_table=on;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            for sql in self._INDEXES:
                conn.execute(sql)
            conn.execute("PRAGMA legacy_alter_table=off;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("migrating table %s", table)
        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(
                f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
            )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_settings(self) -> None:
        with self._connection() as conn:
            for key, value in self._SETTING_DEFAULTS.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class WorkoutRepository(BaseRepository):
    """Repository for workout table operations."""

    def create(
        self,
        name: str,
        date: datetime.datetime | str,
        duration: int = 0,
        notes: str | None = None,
    ) -> str:
        if not name:
            raise InvalidArgument("name must not be empty")
        if duration is None or duration < 0:
            raise InvalidArgument("duration must be non-negative")
        workout_id = new_id()
        self.execute(
            "INSERT INTO workouts (id, name, date, duration, notes) VALUES (?, ?, ?, ?, ?);",
            (workout_id, name, to_iso(date), int(duration), _clean_notes(notes)),
        )
        return workout_id

    def fetch_all_workouts(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        descending: bool = True,
    ) -> List[dict]:
        query = f"SELECT {WORKOUT_COLUMNS} FROM workouts"
        params: list[str] = []
        where_clauses: list[str] = []
        if start_date:
            where_clauses.append("date >= ?")
            params.append(start_date)
        if end_date:
            where_clauses.append("date < ?")
            params.append(end_date)
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        order = "DESC" if descending else "ASC"
        query += f" ORDER BY date {order}, id;"
        return [_workout_row(r) for r in self.fetch_all(query, tuple(params))]

    def fetch_detail(self, workout_id: str) -> dict:
        rows = self.fetch_all(
            f"SELECT {WORKOUT_COLUMNS} FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise NotFound("workout not found")
        return _workout_row(rows[0])

    def update(
        self,
        workout_id: str,
        name=UNCHANGED,
        date=UNCHANGED,
        duration=UNCHANGED,
        notes=UNCHANGED,
    ) -> None:
        """Update the given fields; ``UNCHANGED`` fields keep their value.

        ``notes=None`` or ``notes=""`` clears the notes.
        """
        assignments: list[str] = []
        params: list = []
        if name is not UNCHANGED:
            if not name:
                raise InvalidArgument("name must not be empty")
            assignments.append("name = ?")
            params.append(name)
        if date is not UNCHANGED:
            if date is None:
                raise InvalidArgument("date must not be empty")
            assignments.append("date = ?")
            params.append(to_iso(date))
        if duration is not UNCHANGED:
            if duration is None or duration < 0:
                raise InvalidArgument("duration must be non-negative")
            assignments.append("duration = ?")
            params.append(int(duration))
        if notes is not UNCHANGED:
            assignments.append("notes = ?")
            params.append(_clean_notes(notes))
        with self._connection() as conn:
            if conn.execute(
                "SELECT 1 FROM workouts WHERE id = ?;", (workout_id,)
            ).fetchone() is None:
                raise NotFound("workout not found")
            if assignments:
                conn.execute(
                    f"UPDATE workouts SET {', '.join(assignments)} WHERE id = ?;",
                    (*params, workout_id),
                )

    def delete(self, workout_id: str) -> None:
        with self._connection() as conn:
            if conn.execute(
                "SELECT 1 FROM workouts WHERE id = ?;", (workout_id,)
            ).fetchone() is None:
                raise NotFound("workout not found")
            conn.execute("DELETE FROM exercises WHERE workout_id = ?;", (workout_id,))
            conn.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))

    def duplicate(self, workout_id: str, date: datetime.datetime | str) -> str:
        """Deep-copy a workout and its exercises under new ids."""
        new_workout_id = new_id()
        with self._connection(immediate=True) as conn:
            row = conn.execute(
                f"SELECT {WORKOUT_COLUMNS} FROM workouts WHERE id = ?;",
                (workout_id,),
            ).fetchone()
            if row is None:
                raise NotFound("workout not found")
            source = _workout_row(row)
            conn.execute(
                "INSERT INTO workouts (id, name, date, duration, notes) VALUES (?, ?, ?, ?, ?);",
                (
                    new_workout_id,
                    source["name"],
                    to_iso(date),
                    source["duration"],
                    source["notes"],
                ),
            )
            rows = conn.execute(
                f"SELECT {EXERCISE_COLUMNS} FROM exercises WHERE workout_id = ? ORDER BY position;",
                (workout_id,),
            ).fetchall()
            for ex in (_exercise_row(r) for r in rows):
                ExerciseRepository._insert(conn, new_workout_id, ex, ex["order"])
        return new_workout_id

    def replace_all(self, workouts: Iterable[dict]) -> int:
        """Atomically replace every workout and exercise in the store."""
        count = 0
        with self._connection(immediate=True) as conn:
            conn.execute("DELETE FROM exercises;")
            conn.execute("DELETE FROM workouts;")
            for workout in workouts:
                workout_id = new_id()
                conn.execute(
                    "INSERT INTO workouts (id, name, date, duration, notes) VALUES (?, ?, ?, ?, ?);",
                    (
                        workout_id,
                        workout["name"],
                        to_iso(workout["date"]),
                        int(workout["duration"]),
                        _clean_notes(workout.get("notes")),
                    ),
                )
                for ex in workout.get("exercises", []):
                    ExerciseRepository._insert(conn, workout_id, ex, ex["order"])
                count += 1
        return count

    def fetch_dates(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> List[str]:
        """Return distinct ``YYYY-MM-DD`` dates that have a workout."""
        query = "SELECT DISTINCT substr(date, 1, 10) AS d FROM workouts"
        params: list[str] = []
        where_clauses: list[str] = []
        if start_date:
            where_clauses.append("date >= ?")
            params.append(start_date)
        if end_date:
            where_clauses.append("date < ?")
            params.append(end_date)
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY d;"
        return [r[0] for r in self.fetch_all(query, tuple(params))]

    def fetch_day_counts(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> dict[str, int]:
        """Return the number of workouts per ``YYYY-MM-DD`` day."""
        query = "SELECT substr(date, 1, 10) AS d, COUNT(*) FROM workouts"
        params: list[str] = []
        where_clauses: list[str] = []
        if start_date:
            where_clauses.append("date >= ?")
            params.append(start_date)
        if end_date:
            where_clauses.append("date < ?")
            params.append(end_date)
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " GROUP BY d ORDER BY d;"
        return {d: int(n) for d, n in self.fetch_all(query, tuple(params))}


class ExerciseRepository(BaseRepository):
    """Repository for exercise table operations."""

    @staticmethod
    def _insert(
        conn: sqlite3.Connection, workout_id: str, exercise: dict, position: int
    ) -> str:
        exercise_id = new_id()
        conn.execute(
            f"INSERT INTO exercises ({EXERCISE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                exercise_id,
                workout_id,
                exercise["name"],
                exercise.get("exercise_type", EXERCISE_TYPES[0]),
                int(exercise.get("sets", 0)),
                int(exercise.get("reps", 0)),
                float(exercise.get("weight", 0.0)),
                int(exercise.get("duration", 0)),
                float(exercise.get("distance", 0.0)),
                int(exercise.get("calories", 0)),
                int(exercise.get("hold_time", 0)),
                _clean_notes(exercise.get("notes")),
                int(position),
            ),
        )
        return exercise_id

    @staticmethod
    def _append_position(conn: sqlite3.Connection, workout_id: str) -> int:
        if conn.execute(
            "SELECT 1 FROM workouts WHERE id = ?;", (workout_id,)
        ).fetchone() is None:
            raise NotFound("workout not found")
        (count,) = conn.execute(
            "SELECT COUNT(*) FROM exercises WHERE workout_id = ?;", (workout_id,)
        ).fetchone()
        return int(count)

    def add(
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
        notes: Optional[str] = None,
    ) -> str:
        if not name:
            raise InvalidArgument("name must not be empty")
        _check_type(exercise_type)
        values = {
            "name": name,
            "exercise_type": exercise_type,
            "sets": sets,
            "reps": reps,
            "weight": weight,
            "duration": duration,
            "distance": distance,
            "calories": calories,
            "hold_time": hold_time,
            "notes": notes,
        }
        _check_measurements(values)
        with self._connection(immediate=True) as conn:
            position = self._append_position(conn, workout_id)
            return self._insert(conn, workout_id, values, position)

    def fetch_for_workout(self, workout_id: str) -> List[dict]:
        rows = self.fetch_all(
            f"SELECT {EXERCISE_COLUMNS} FROM exercises WHERE workout_id = ? ORDER BY position;",
            (workout_id,),
        )
        return [_exercise_row(r) for r in rows]

    def fetch_all_exercises(self) -> List[dict]:
        rows = self.fetch_all(
            f"SELECT {EXERCISE_COLUMNS} FROM exercises ORDER BY workout_id, position;"
        )
        return [_exercise_row(r) for r in rows]

    def fetch_detail(self, exercise_id: str) -> dict:
        rows = self.fetch_all(
            f"SELECT {EXERCISE_COLUMNS} FROM exercises WHERE id = ?;",
            (exercise_id,),
        )
        if not rows:
            raise NotFound("exercise not found")
        return _exercise_row(rows[0])

    def update(self, exercise_id: str, **fields) -> None:
        """Update the given columns; ``UNCHANGED`` values are skipped.

        ``notes=None`` or ``notes=""`` clears the notes.
        """
        allowed = {"name", "exercise_type", "notes", *MEASUREMENTS}
        unknown = set(fields) - allowed
        if unknown:
            raise InvalidArgument(f"unknown fields: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in fields.items() if v is not UNCHANGED}
        if "name" in changes and not changes["name"]:
            raise InvalidArgument("name must not be empty")
        if "exercise_type" in changes:
            _check_type(changes["exercise_type"])
        _check_measurements(changes)
        if "notes" in changes:
            changes["notes"] = _clean_notes(changes["notes"])
        with self._connection() as conn:
            if conn.execute(
                "SELECT 1 FROM exercises WHERE id = ?;", (exercise_id,)
            ).fetchone() is None:
                raise NotFound("exercise not found")
            if changes:
                assignments = ", ".join(f"{col} = ?" for col in changes)
                conn.execute(
                    f"UPDATE exercises SET {assignments} WHERE id = ?;",
                    (*changes.values(), exercise_id),
                )

    def remove(self, exercise_id: str) -> None:
        with self._connection(immediate=True) as conn:
            row = conn.execute(
                "SELECT workout_id FROM exercises WHERE id = ?;", (exercise_id,)
            ).fetchone()
            if row is None:
                raise NotFound("exercise not found")
            conn.execute("DELETE FROM exercises WHERE id = ?;", (exercise_id,))
            # Keep positions dense so appending at COUNT(*) stays unique.
            remaining = conn.execute(
                "SELECT id FROM exercises WHERE workout_id = ? ORDER BY position;",
                (row[0],),
            ).fetchall()
            for pos, (eid,) in enumerate(remaining):
                conn.execute(
                    "UPDATE exercises SET position = ? WHERE id = ?;", (pos, eid)
                )

    def duplicate(self, exercise_id: str, target_workout_id: str | None = None) -> str:
        with self._connection(immediate=True) as conn:
            row = conn.execute(
                f"SELECT {EXERCISE_COLUMNS} FROM exercises WHERE id = ?;",
                (exercise_id,),
            ).fetchone()
            if row is None:
                raise NotFound("exercise not found")
            source = _exercise_row(row)
            workout_id = target_workout_id or source["workout_id"]
            position = self._append_position(conn, workout_id)
            return self._insert(conn, workout_id, source, position)

    def history(self, name: str, start_date: str) -> List[Tuple[str, dict]]:
        """Return ``(workout date, exercise)`` pairs ascending by date."""
        columns = ", ".join(f"e.{c.strip()}" for c in EXERCISE_COLUMNS.split(","))
        rows = self.fetch_all(
            f"SELECT w.date, {columns} FROM exercises e JOIN workouts w ON e.workout_id = w.id "
            "WHERE e.name = ? AND w.date >= ? ORDER BY w.date, e.position;",
            (name, start_date),
        )
        return [(r[0], _exercise_row(r[1:])) for r in rows]

    def distinct_names(self) -> List[str]:
        rows = self.fetch_all("SELECT DISTINCT name FROM exercises ORDER BY name;")
        return [r[0] for r in rows]


class CustomExerciseRepository(BaseRepository):
    """User-maintained exercise names per category."""

    def add(self, name: str, exercise_type: str) -> bool:
        """Register ``name``; built-in names are never stored."""
        _check_type(exercise_type)
        if not name or is_builtin(name, exercise_type):
            return False
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO custom_exercises (name, exercise_type) VALUES (?, ?);",
                (name, exercise_type),
            )
            return cursor.rowcount > 0

    def fetch_custom(self, exercise_type: str) -> List[str]:
        rows = self.fetch_all(
            "SELECT name FROM custom_exercises WHERE exercise_type = ? ORDER BY name;",
            (exercise_type,),
        )
        return [r[0] for r in rows]

    def library(self, exercise_type: str) -> List[str]:
        """Built-in names plus custom names still used by an exercise."""
        _check_type(exercise_type)
        rows = self.fetch_all(
            "SELECT c.name FROM custom_exercises c WHERE c.exercise_type = ? AND EXISTS "
            "(SELECT 1 FROM exercises e WHERE e.name = c.name AND e.exercise_type = c.exercise_type);",
            (exercise_type,),
        )
        names = set(BUILTIN_EXERCISES.get(exercise_type, []))
        names.update(r[0] for r in rows)
        return sorted(names)


class SettingsRepository(BaseRepository):
    """Repository for user preferences synchronized with YAML."""

    BOOL_KEYS = {"has_unsynced_changes"}
    FIREBASE_KEYS = (
        "firebase_api_key",
        "firebase_project_id",
        "firebase_app_id",
        "firebase_sender_id",
    )

    def __init__(
        self, db_path: str = "workout.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, bool | str] = {}
        for k, v in rows:
            if k in self.BOOL_KEYS:
                result[k] = v in {"1", "true", "True"}
            else:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                if key in self.BOOL_KEYS:
                    val = "1" if str(value) in {"1", "true", "True"} else "0"
                else:
                    val = str(value)
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in {"1", "true", "True"}

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()

    def update(self, **values) -> None:
        """Validate and store several preferences at once."""
        merged = self._raw_all_settings()
        merged.update(values)
        validate_settings(merged)
        for key, value in values.items():
            if key in self.BOOL_KEYS:
                self.set_bool(key, bool(value))
            else:
                self.set_text(key, str(value))

    def weight_unit(self) -> str:
        return self.get_text("weight_unit", "kg")

    def is_dirty(self) -> bool:
        return self.get_bool("has_unsynced_changes", False)

    def mark_dirty(self) -> None:
        self.set_bool("has_unsynced_changes", True)

    def mark_clean(self) -> None:
        self.set_bool("has_unsynced_changes", False)

    def firebase_credentials(self) -> dict:
        return {key: self.get_text(key, "") for key in self.FIREBASE_KEYS}

    def set_firebase_credentials(
        self, api_key: str, project_id: str, app_id: str, sender_id: str
    ) -> None:
        self.update(
            firebase_api_key=api_key,
            firebase_project_id=project_id,
            firebase_app_id=app_id,
            firebase_sender_id=sender_id,
        )


class AsyncReadOnlyDatabase:
    """Read-only asynchronous access to a store written by another process.

    Never creates the file or its schema; a missing store is reported as a
    :class:`StorageError`.
    """

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout

    @asynccontextmanager
    async def _async_connection(self):
        if not os.path.exists(self._db_path):
            raise StorageError(f"store not found: {self._db_path}")
        uri = pathlib.Path(os.path.abspath(self._db_path)).as_uri() + "?mode=ro"
        try:
            conn = await aiosqlite.connect(uri, uri=True, timeout=self._timeout)
        except sqlite3.Error as e:
            raise StorageError(f"cannot open {self._db_path}: {e}") from e
        try:
            yield conn
        finally:
            await conn.close()

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        try:
            async with self._async_connection() as conn:
                cursor = await conn.execute(query, params)
                rows = await cursor.fetchall()
                return list(rows)
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e


class AsyncWorkoutDateReader(AsyncReadOnlyDatabase):
    """Widget-side query for the calendar days that have workouts."""

    async def fetch_dates(self, start_date: str, end_date: str) -> List[str]:
        rows = await self.fetch_all(
            "SELECT DISTINCT substr(date, 1, 10) AS d FROM workouts "
            "WHERE date >= ? AND date < ? ORDER BY d;",
            (start_date, end_date),
        )
        return [r[0] for r in rows]
