"""
Financial Trend Analysis Engine.

Period-over-period growth, smoothing, a least-squares forecast and z-score
anomaly detection over the Period series produced by the aggregation layer.
"""

from typing import List, Dict, Any, Iterable
import logging

import numpy as np

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import DEFAULT_FORECAST_PERIODS, MOVING_AVERAGE_WINDOW, ANOMALY_Z_THRESHOLD

from .metrics_engine import display_value
from .period_engine import Period

logger = logging.getLogger(__name__)

SERIES = ("income", "expense", "profit")


# ==============================================================================
# GROWTH AND SMOOTHING
# ==============================================================================

def calculate_growth(current: float, previous: float) -> float:
    """
    Percentage change from previous to current.

    A move away from zero counts as 100% growth; zero to zero is 0%.
    Negative bases use their absolute value so the sign follows the
    direction of the change.

    Example:
        >>> calculate_growth(150, 100)
        50.0
        >>> calculate_growth(50, 0)
        100
    """
    if previous == 0:
        return 100 if current > 0 else 0

    return (current - previous) / abs(previous) * 100


def calculate_moving_average(
    values: List[float],
    window_size: int = MOVING_AVERAGE_WINDOW
) -> List[float]:
    """
    Centred simple moving average; windows are truncated at both ends.

    Returns:
        One average per input value
    """
    arr = np.asarray(values, dtype=float)
    half = window_size // 2
    averages = []

    for i in range(len(arr)):
        window = arr[max(0, i - half):min(len(arr), i + half + 1)]
        averages.append(float(window.mean()))

    return averages


# ==============================================================================
# FORECASTING
# ==============================================================================

def forecast_linear_trend(
    values: List[float],
    periods: int = DEFAULT_FORECAST_PERIODS
) -> List[float]:
    """
    Extrapolate a least-squares line over the series index.

    Args:
        values: Historical values, oldest first
        periods: Number of future points to produce

    Returns:
        Forecast values floored at 0. With fewer than two points the last
        value (or 0) is repeated.

    Example:
        >>> forecast_linear_trend([100, 200, 300], periods=2)
        [400.0, 500.0]
    """
    if len(values) < 2:
        last = values[-1] if values else 0
        return [last] * periods

    y = np.asarray(values, dtype=float)
    x = np.arange(len(y), dtype=float)
    x_mean = x.mean()
    y_mean = y.mean()

    denominator = np.sum((x - x_mean) ** 2)
    slope = np.sum((x - x_mean) * (y - y_mean)) / denominator if denominator else 0.0
    intercept = y_mean - slope * x_mean

    future_x = np.arange(len(y), len(y) + periods, dtype=float)
    forecasts = np.maximum(0, slope * future_x + intercept)

    logger.debug(f"Forecast {periods} periods with slope {slope:.4f}")
    return [float(v) for v in forecasts]


# ==============================================================================
# ANOMALY DETECTION
# ==============================================================================

def detect_anomalies(
    values: List[float],
    threshold: float = ANOMALY_Z_THRESHOLD
) -> List[Dict[str, Any]]:
    """
    Flag values whose z-score magnitude exceeds the threshold.

    Uses the population standard deviation; a flat series (std 0) is
    scored against a std of 1. Series shorter than 3 have no anomalies.

    Returns:
        List of {'index', 'z_score', 'type'} with type 'spike' above the
        mean and 'dip' below it
    """
    if len(values) < 3:
        return []

    arr = np.asarray(values, dtype=float)
    std = arr.std() or 1.0
    z_scores = (arr - arr.mean()) / std

    anomalies = []
    for index, z in enumerate(z_scores):
        if abs(z) > threshold:
            anomalies.append({
                "index": index,
                "z_score": float(z),
                "type": "spike" if z > 0 else "dip"
            })

    return anomalies


# ==============================================================================
# TREND SERIES
# ==============================================================================

def build_trend_series(
    periods: Iterable[Period],
    forecast_periods: int = DEFAULT_FORECAST_PERIODS
) -> Dict[str, Any]:
    """
    Build the trend view of a Period series.

    Periods are sorted by start date. Each point carries income, expense
    and profit with their growth over the previous period (0 for the first
    point) and an anomaly flag; anomaly_type names the first series
    (income, then expense, then profit) flagged at that point.

    Returns:
        Dictionary with 'points', 'forecast' (per series) and 'summary'
        (historical averages and anomaly count)
    """
    ordered = sorted(periods, key=lambda p: p.start_date)
    if not ordered:
        return {
            "points": [],
            "forecast": {name: [] for name in SERIES},
            "summary": {"avg_income": 0, "avg_expense": 0, "avg_profit": 0, "anomaly_count": 0}
        }

    values = {name: [getattr(p, name) for p in ordered] for name in SERIES}
    flagged = {
        name: {a["index"] for a in detect_anomalies(values[name])}
        for name in SERIES
    }

    points = []
    for index, period in enumerate(ordered):
        point = {"period": period.label}
        for name in SERIES:
            current = values[name][index]
            growth = calculate_growth(current, values[name][index - 1]) if index > 0 else 0
            point[name] = current
            point[f"{name}_growth"] = display_value(growth)

        anomaly_type = next((name for name in SERIES if index in flagged[name]), None)
        point["is_anomaly"] = anomaly_type is not None
        point["anomaly_type"] = anomaly_type
        points.append(point)

    summary = {
        "avg_income": float(np.mean(values["income"])),
        "avg_expense": float(np.mean(values["expense"])),
        "avg_profit": float(np.mean(values["profit"])),
        "anomaly_count": sum(1 for p in points if p["is_anomaly"])
    }

    logger.debug(f"Built trend series over {len(points)} periods")
    return {
        "points": points,
        "forecast": {
            name: forecast_linear_trend(values[name], forecast_periods) for name in SERIES
        },
        "summary": summary
    }
