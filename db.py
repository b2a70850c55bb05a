import sqlite3
import json
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from exceptions import StoreError
from models import (
    Category,
    CategoryColor,
    Exercise,
    HistoryRecord,
    RepeatOption,
    SplitTime,
    UserBiometricProfile,
    Workout,
)


logger = logging.getLogger(__name__)

DEFAULT_USER_KEY = "local"


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _exercise_to_dict(exercise: Exercise) -> dict:
    return {'id': exercise.id, 'name': exercise.name, 'order': exercise.order}


class WorkoutStore:
    """
    Object-graph store over sqlite.

    Entities are loaded into an identity map on open; ``insert`` registers
    new ones, ``fetch`` filters the map by predicate, and ``save`` writes the
    whole graph in one transaction.
    """

    def __init__(self, db_path='movemd.db'):
        self.db_path = db_path
        self._workouts: Dict[str, Workout] = {}
        self._categories: Dict[str, Category] = {}
        self._users: Dict[str, UserBiometricProfile] = {}
        self._deleted_workouts: set = set()
        try:
            self.create_tables()
            self._load()
        except sqlite3.Error as exc:
            raise StoreError("Failed to open store {0}: {1}".format(db_path, exc)) from exc

    def get_connection(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def create_tables(self):
        with self.get_connection() as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
                )
            ''')
            conn.execute('''
                CREATE TABLE IF NOT EXISTS categories (
                    name TEXT PRIMARY KEY,
                    symbol TEXT,
                    color TEXT
                )
            ''')
            conn.execute('''
                CREATE TABLE IF NOT EXISTS users (
                    user_key TEXT PRIMARY KEY,
                    json_data TEXT
                )
            ''')
            conn.execute('''
                CREATE TABLE IF NOT EXISTS workouts (
                    title TEXT PRIMARY KEY,
                    category_name TEXT,
                    date_created TEXT,
                    date_completed TEXT,
                    last_session_duration REAL,
                    personal_best REAL,
                    summary TEXT,
                    json_data TEXT
                )
            ''')
            conn.execute('''
                CREATE TABLE IF NOT EXISTS history (
                    id TEXT PRIMARY KEY,
                    workout_title TEXT NOT NULL,
                    date TEXT NOT NULL,
                    duration_min REAL,
                    notes TEXT,
                    json_data TEXT
                )
            ''')

            # Additive migrations for stores created before metrics existed
            cursor = conn.execute("PRAGMA table_info(history)")
            columns = [info[1] for info in cursor.fetchall()]
            migrations = {
                'intensity_score': 'REAL',
                'progress_pulse_score': 'REAL',
                'dominant_zone': 'INTEGER',
            }
            for col, dtype in migrations.items():
                if col not in columns:
                    logger.info("Migrating database: adding history.%s column", col)
                    conn.execute(f"ALTER TABLE history ADD COLUMN {col} {dtype}")

    # --- settings ---

    def get_setting(self, key, default=None):
        with self.get_connection() as conn:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
            return row[0] if row else default

    def set_setting(self, key, value):
        with self.get_connection() as conn:
            conn.execute(
                '''
                INSERT INTO settings (key, value, updated_at)
                VALUES (?, ?, strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                ''',
                (key, str(value)),
            )

    def get_int_setting(self, key, default: int) -> int:
        raw = self.get_setting(key)
        try:
            return int(raw) if raw is not None else default
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid setting %s=%r", key, raw)
            return default

    # --- loading ---

    def _load(self):
        with self.get_connection() as conn:
            for row in conn.execute("SELECT name, symbol, color FROM categories"):
                self._categories[row['name']] = Category(
                    name=row['name'], symbol=row['symbol'], color=CategoryColor(row['color'])
                )

            for row in conn.execute("SELECT user_key, json_data FROM users"):
                self._users[row['user_key']] = UserBiometricProfile(**json.loads(row['json_data']))

            for row in conn.execute("SELECT * FROM workouts"):
                self._workouts[row['title']] = self._workout_from_row(row)

            history_rows = conn.execute("SELECT * FROM history ORDER BY date").fetchall()

        for row in history_rows:
            workout = self._workouts.get(row['workout_title'])
            if workout is None:
                logger.warning("Orphaned history %s for missing workout %r", row['id'], row['workout_title'])
                continue
            workout.history.append(self._history_from_row(row, workout))

        logger.debug(
            "Loaded %d workouts, %d categories, %d users from %s",
            len(self._workouts), len(self._categories), len(self._users), self.db_path,
        )

    def _workout_from_row(self, row) -> Workout:
        extra = json.loads(row['json_data'] or '{}')
        repeat = extra.get('repeat_option')
        return Workout(
            title=row['title'],
            exercises=[Exercise(**e) for e in extra.get('exercises', [])],
            last_session_duration=row['last_session_duration'] or 0.0,
            date_created=_from_iso(row['date_created']) or datetime.now(),
            date_completed=_from_iso(row['date_completed']),
            category=self._categories.get(row['category_name']) if row['category_name'] else None,
            personal_best=row['personal_best'],
            summary=row['summary'],
            schedule_date=_from_iso(extra.get('schedule_date')),
            notification_time=_from_iso(extra.get('notification_time')),
            repeat_option=RepeatOption(repeat) if repeat else None,
        )

    @staticmethod
    def _history_from_row(row, workout: Workout) -> HistoryRecord:
        extra = json.loads(row['json_data'] or '{}')
        by_id = {e.id: e for e in workout.exercises}

        def resolve(data):
            if data is None:
                return None
            return by_id.get(data['id']) or Exercise(**data)

        return HistoryRecord(
            id=row['id'],
            date=_from_iso(row['date']),
            last_session_duration=row['duration_min'] or 0.0,
            notes=row['notes'],
            exercises_completed=[resolve(e) for e in extra.get('exercises_completed', [])],
            split_times=[
                SplitTime(duration_in_seconds=s['duration_in_seconds'], exercise=resolve(s.get('exercise')))
                for s in extra.get('split_times', [])
            ],
            intensity_score=row['intensity_score'],
            progress_pulse_score=row['progress_pulse_score'],
            dominant_zone=row['dominant_zone'],
        )

    # --- object-graph API ---

    def insert(self, entity):
        if isinstance(entity, Workout):
            self._workouts[entity.title] = entity
            self._deleted_workouts.discard(entity.title)
            if entity.category is not None:
                self._categories.setdefault(entity.category.name, entity.category)
        elif isinstance(entity, Category):
            self._categories[entity.name] = entity
        elif isinstance(entity, UserBiometricProfile):
            self._users[entity.apple_user_id or DEFAULT_USER_KEY] = entity
        else:
            raise TypeError("Cannot insert {0!r}".format(type(entity).__name__))

    def delete(self, workout: Workout):
        self._workouts.pop(workout.title, None)
        self._deleted_workouts.add(workout.title)

    def fetch(self, entity_type, predicate: Optional[Callable] = None) -> List:
        if entity_type is Workout:
            items = list(self._workouts.values())
        elif entity_type is HistoryRecord:
            items = [h for w in self._workouts.values() for h in w.history]
        elif entity_type is Category:
            items = list(self._categories.values())
        elif entity_type is UserBiometricProfile:
            items = list(self._users.values())
        else:
            raise TypeError("Cannot fetch {0!r}".format(getattr(entity_type, '__name__', entity_type)))
        if predicate is None:
            return items
        return [item for item in items if predicate(item)]

    def workout_for(self, history: HistoryRecord) -> Optional[Workout]:
        for workout in self._workouts.values():
            if any(h is history or h.id == history.id for h in workout.history):
                return workout
        return None

    def current_user(self, apple_user_id: Optional[str] = None) -> Optional[UserBiometricProfile]:
        return self._users.get(apple_user_id or DEFAULT_USER_KEY)

    def save(self):
        """Write the in-memory graph. Raises StoreError on any sqlite failure."""
        try:
            with self.get_connection() as conn:
                for title in self._deleted_workouts:
                    conn.execute("DELETE FROM history WHERE workout_title = ?", (title,))
                    conn.execute("DELETE FROM workouts WHERE title = ?", (title,))

                for category in self._categories.values():
                    conn.execute(
                        "INSERT OR REPLACE INTO categories (name, symbol, color) VALUES (?, ?, ?)",
                        (category.name, category.symbol, category.color.value),
                    )

                for key, user in self._users.items():
                    conn.execute(
                        "INSERT OR REPLACE INTO users (user_key, json_data) VALUES (?, ?)",
                        (key, json.dumps(user.__dict__, default=str)),
                    )

                for workout in self._workouts.values():
                    self._write_workout(conn, workout)
        except sqlite3.Error as exc:
            logger.error("Local store save failed: %s", exc)
            raise StoreError("Failed to save local store: {0}".format(exc)) from exc
        self._deleted_workouts.clear()
        logger.debug("Saved %d workouts to %s", len(self._workouts), self.db_path)

    def _write_workout(self, conn, workout: Workout):
        extra = {
            'exercises': [_exercise_to_dict(e) for e in workout.exercises],
            'schedule_date': _to_iso(workout.schedule_date),
            'notification_time': _to_iso(workout.notification_time),
            'repeat_option': workout.repeat_option.value if workout.repeat_option else None,
        }
        conn.execute('''
            INSERT OR REPLACE INTO workouts (
                title, category_name, date_created, date_completed,
                last_session_duration, personal_best, summary, json_data
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            workout.title,
            workout.category.name if workout.category else None,
            _to_iso(workout.date_created),
            _to_iso(workout.date_completed),
            workout.last_session_duration,
            workout.personal_best,
            workout.summary,
            json.dumps(extra),
        ))

        conn.execute("DELETE FROM history WHERE workout_title = ?", (workout.title,))
        for record in workout.history:
            history_extra = {
                'exercises_completed': [_exercise_to_dict(e) for e in record.exercises_completed],
                'split_times': [
                    {
                        'duration_in_seconds': s.duration_in_seconds,
                        'exercise': _exercise_to_dict(s.exercise) if s.exercise else None,
                    }
                    for s in record.split_times
                ],
            }
            conn.execute('''
                INSERT INTO history (
                    id, workout_title, date, duration_min, notes,
                    intensity_score, progress_pulse_score, dominant_zone, json_data
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                record.id,
                workout.title,
                _to_iso(record.date),
                record.last_session_duration,
                record.notes,
                record.intensity_score,
                record.progress_pulse_score,
                record.dominant_zone,
                json.dumps(history_extra),
            ))

    def update_history_notes(self, history_id: str, notes: Optional[str]) -> bool:
        """The only mutation allowed on a history record after creation."""
        matches = self.fetch(HistoryRecord, lambda h: h.id == history_id)
        if not matches:
            return False
        matches[0].notes = notes
        self.save()
        return True
