# src/injengine/config.py
"""
Engine defaults.
All settings via environment variables with sensible defaults.
"""

import os

# --- Steady state (days) ---
# The regimen is assumed to have settled by day 28; 28-42 is the sampled window.
STEADY_STATE_START_DAY: float = float(os.getenv("INJENGINE_STEADY_STATE_START_DAY", "28"))
STEADY_STATE_END_DAY: float = float(os.getenv("INJENGINE_STEADY_STATE_END_DAY", "42"))

# --- Sampling ---
CURVE_HORIZON_DAYS: int = int(os.getenv("INJENGINE_CURVE_HORIZON_DAYS", "42"))
CURVE_POINTS_PER_DAY: int = int(os.getenv("INJENGINE_CURVE_POINTS_PER_DAY", "12"))
STABILITY_POINTS_PER_DAY: int = int(os.getenv("INJENGINE_STABILITY_POINTS_PER_DAY", "24"))

# --- Superposition horizon ---
# A dose stops contributing after max(HALF_LIVES * t1/2, FLOOR_DAYS).
CONTRIBUTION_HALF_LIVES: float = float(os.getenv("INJENGINE_CONTRIBUTION_HALF_LIVES", "10"))
CONTRIBUTION_FLOOR_DAYS: float = float(os.getenv("INJENGINE_CONTRIBUTION_FLOOR_DAYS", "30"))

# --- Device (U-100 syringe: 100 units = 1 mL) ---
DEVICE_UNITS_PER_ML: float = 100.0
DEVICE_MAX_UNITS: int = int(os.getenv("INJENGINE_DEVICE_MAX_UNITS", "100"))

# --- Auto-miss backfill ---
AUTO_MISS_CUTOFF_HOUR: int = int(os.getenv("INJENGINE_AUTO_MISS_CUTOFF_HOUR", "22"))
AUTO_MISS_LOOKBACK_DAYS: int = int(os.getenv("INJENGINE_AUTO_MISS_LOOKBACK_DAYS", "7"))

# --- Live status ---
LIVE_STATUS_PERCENT_CAP: int = int(os.getenv("INJENGINE_LIVE_STATUS_PERCENT_CAP", "105"))
LIVE_STATUS_PEAK_STEP_DAYS: float = float(os.getenv("INJENGINE_LIVE_STATUS_PEAK_STEP_DAYS", "0.1"))
LIVE_STATUS_RECENT_DOSES: int = int(os.getenv("INJENGINE_LIVE_STATUS_RECENT_DOSES", "10"))

# --- Schedule search ---
NEXT_INJECTION_SEARCH_DAYS: int = int(os.getenv("INJENGINE_NEXT_INJECTION_SEARCH_DAYS", "14"))
