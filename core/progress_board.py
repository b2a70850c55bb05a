"""90-day progress statistics over locally stored workout history."""

from __future__ import annotations

from datetime import datetime

import pandas as pd

from constants import PROGRESS_WEEK_BUCKETS, PROGRESS_WINDOW_DAYS, UNCATEGORIZED
from models import Workout


HISTORY_COLUMNS = [
    'date',
    'day',
    'workout_title',
    'category',
    'duration_min',
    'intensity_score',
    'progress_pulse_score',
    'dominant_zone',
]


def format_total_duration(minutes: float) -> str:
    """Abbreviated hours/minutes, e.g. '2h 5m' or '45m'."""
    total = int(round(minutes or 0))
    hours, mins = divmod(total, 60)
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


class ProgressBoard:
    """Owns the history DataFrame behind the progress screen."""

    def __init__(self, store, now=datetime.now, window_days: int = PROGRESS_WINDOW_DAYS):
        self.store = store
        self._now = now
        self.window_days = window_days
        self.df = None

    def _window(self):
        today = pd.Timestamp(self._now()).normalize()
        start = today - pd.Timedelta(days=self.window_days - 1)
        end = today + pd.Timedelta(days=1)
        return today, start, end

    def load(self) -> pd.DataFrame:
        """Rebuild the DataFrame of history records inside the window."""
        today, start, end = self._window()
        rows = []
        for workout in self.store.fetch(Workout):
            category = workout.category.name if workout.category else UNCATEGORIZED
            for record in workout.history:
                rows.append({
                    'date': pd.Timestamp(record.date),
                    'workout_title': workout.title,
                    'category': category,
                    'duration_min': record.last_session_duration,
                    'intensity_score': record.intensity_score,
                    'progress_pulse_score': record.progress_pulse_score,
                    'dominant_zone': record.dominant_zone,
                })

        df = pd.DataFrame(rows, columns=[c for c in HISTORY_COLUMNS if c != 'day'])
        if not df.empty:
            df['date'] = pd.to_datetime(df['date'])
            df = df[(df['date'] >= start) & (df['date'] < end)].sort_values('date').copy()
        df['day'] = df['date'].dt.normalize() if not df.empty else pd.Series(dtype='datetime64[ns]')
        self.df = df.reset_index(drop=True)
        return self.df

    def _frame(self) -> pd.DataFrame:
        return self.df if self.df is not None else self.load()

    def summary(self) -> dict:
        df = self._frame()
        total_minutes = float(df['duration_min'].sum()) if not df.empty else 0.0
        total_workouts = int(len(df))
        return {
            'total_workouts': total_workouts,
            'total_duration_min': total_minutes,
            'total_duration_formatted': format_total_duration(total_minutes),
            'avg_workouts_per_week': total_workouts / (self.window_days / 7.0),
            'distinct_active_days': int(df['day'].nunique()) if not df.empty else 0,
        }

    def weekly_buckets(self, weeks: int = PROGRESS_WEEK_BUCKETS) -> pd.DataFrame:
        """
        Rolling 7-day buckets ending today, oldest first.

        Columns: week_start, week_end, duration_min, workouts, avg_pulse
        (mean progress pulse of scored sessions, 0 when none).
        """
        df = self._frame()
        today, _, _ = self._window()
        buckets = []
        for week_index in range(weeks):
            week_end = today - pd.Timedelta(days=7 * week_index)
            week_start = week_end - pd.Timedelta(days=6)
            if df.empty:
                in_week = df
            else:
                in_week = df[(df['day'] >= week_start) & (df['day'] <= week_end)]
            scores = in_week['progress_pulse_score'].dropna() if not in_week.empty else pd.Series(dtype=float)
            buckets.append({
                'week_start': week_start,
                'week_end': week_end,
                'duration_min': float(in_week['duration_min'].sum()) if not in_week.empty else 0.0,
                'workouts': int(len(in_week)),
                'avg_pulse': float(scores.mean()) if not scores.empty else 0.0,
            })
        return pd.DataFrame(list(reversed(buckets)))

    def heatmap(self) -> list:
        """One entry per day of the window, oldest first."""
        df = self._frame()
        today, start, _ = self._window()
        days = []
        for offset in range(self.window_days):
            day = start + pd.Timedelta(days=offset)
            on_day = df[df['day'] == day] if not df.empty else df
            first_title = on_day['workout_title'].iloc[0] if not on_day.empty else ''
            days.append({
                'date': day.to_pydatetime().date(),
                'did_workout': not on_day.empty,
                'is_today': day == today,
                'is_test_workout': 'test' in first_title.lower(),
            })
        return days

    def latest_metrics_by_category(self) -> dict:
        """Most recent scored session per category."""
        df = self._frame()
        if df.empty:
            return {}
        metric_cols = ['intensity_score', 'progress_pulse_score', 'dominant_zone']
        scored = df[df[metric_cols].notna().any(axis=1)]
        if scored.empty:
            return {}
        latest = scored.sort_values('date').groupby('category').tail(1)
        result = {}
        for _, row in latest.iterrows():
            result[row['category']] = {
                col: (None if pd.isna(row[col]) else row[col]) for col in metric_cols
            }
            if result[row['category']]['dominant_zone'] is not None:
                result[row['category']]['dominant_zone'] = int(result[row['category']]['dominant_zone'])
        return result
