"""Shared defaults for the workout-session metrics engine."""

from __future__ import annotations

# --- Session timer ---
TIMER_TICK_SECONDS = 0.01

# --- Heart-rate fallbacks ---
DEFAULT_ADULT_AGE = 30
MAX_HR_AGE_CONSTANT = 220
ZONE_MAX_GAP_SECONDS = 60.0

# --- Progress pulse ---
PULSE_BASE_SCORE = 50.0
PULSE_PERSONAL_BEST_BONUS = 15.0
PULSE_POINTS_PER_WORKOUT = 5.0
PULSE_HIGH_INTENSITY_BONUS = 10.0
PULSE_MODERATE_INTENSITY_BONUS = 5.0
DEFAULT_TARGET_WORKOUTS_PER_WEEK = 3

# --- Energy estimate (kcal = MET x 3.5 x kg / 200 x minutes) ---
MET_OXYGEN_FACTOR = 3.5
MET_KCAL_DIVISOR = 200.0

# --- Profile refresh tolerances ---
WEIGHT_TOLERANCE_KG = 0.01
HEIGHT_TOLERANCE_M = 0.001

# --- Progress board ---
PROGRESS_WINDOW_DAYS = 90
PROGRESS_WEEK_BUCKETS = 12
UNCATEGORIZED = "Uncategorized"

# --- Settings keys (sqlite settings table) ---
SETTING_TARGET_WORKOUTS_PER_WEEK = "target_workouts_per_week"

# --- User-facing alert copy ---
ALERT_COPY = {
    'purchase_required': {
        'title': "Purchase Required",
        'message': (
            "Your workout was saved on this device. "
            "Please purchase the app to also save workouts to Health."
        ),
    },
    'sync_failed': {
        'title': "Health Sync Failed",
        'message': "Your workout was saved on this device, but syncing to Health failed: {error}",
    },
    'save_failed': {
        'title': "Workout Save Failed",
        'message': "Failed to save workout session locally: {error}",
    },
}
