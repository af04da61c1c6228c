"""
Statistics Utilities

This module provides utility functions for reducing segment telemetry
into latency, jitter and delay metrics.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
import numpy as np
from typing import Dict, List, Any, Optional, Sequence


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero.

    Args:
        value: Value to round

    Returns:
        Rounded integer
    """
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def round_decimal(value: float, places: int = 1) -> float:
    """Round to a number of decimal places, halves away from zero.

    The exact binary value of the float is rounded, so 0.25 becomes 0.3
    while 0.95 (stored as 0.9499...) becomes 0.9.

    Args:
        value: Value to round
        places: Number of decimal places

    Returns:
        Rounded value
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(float(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def latency_statistics(latency_values: Sequence[float]) -> Optional[Dict[str, float]]:
    """Calculate statistics for latency values.

    Args:
        latency_values: Latency measurements in milliseconds

    Returns:
        Dictionary with 'average', 'min' and 'max', or None if there
        are no values
    """
    if len(latency_values) == 0:
        return None

    latency_array = np.asarray(latency_values, dtype=float)

    return {
        'average': float(np.mean(latency_array)),
        'min': float(np.min(latency_array)),
        'max': float(np.max(latency_array)),
    }


def sample_stddev(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1 denominator).

    Args:
        values: Sample values

    Returns:
        Standard deviation, 0.0 for fewer than two values
    """
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float), ddof=1))


def calculate_jitter(delay_values: Sequence[float]) -> float:
    """Calculate jitter from segment delays.

    The standard deviation is rounded to whole milliseconds before it is
    converted to seconds.

    Args:
        delay_values: Segment delays in milliseconds

    Returns:
        Jitter in seconds, 0 for fewer than two delays
    """
    if len(delay_values) < 2:
        return 0
    return round_half_up(sample_stddev(delay_values)) / 1000


def calculate_track_delay(video_timestamp: Optional[float],
                          audio_timestamp: Optional[float]) -> Optional[float]:
    """Absolute distance between the latest video and audio segments.

    Args:
        video_timestamp: Timestamp of the last video segment (ms)
        audio_timestamp: Timestamp of the last audio segment (ms)

    Returns:
        Delay in milliseconds, or None if either track is missing
    """
    if video_timestamp is None or audio_timestamp is None:
        return None
    return abs(video_timestamp - audio_timestamp)


def format_latency_report(report: Optional[Dict[str, Any]]) -> str:
    """Format a monitor report into a single readable line.

    Args:
        report: Report produced by the periodic monitor, or None

    Returns:
        Formatted report as string
    """
    if report is None:
        return "Latency: no data"

    parts = [
        f"Latency (ms): avg={report['averageLatency']:.1f}, "
        f"min={report['minLatency']:.1f}, max={report['maxLatency']:.1f}"
    ]

    if 'jitter' in report:
        parts.append(f"jitter={report['jitter']:.3f}s")

    if report.get('crossTrackDelay') is not None:
        parts.append(f"a/v delay={report['crossTrackDelay']:.0f}ms")

    if 'recentCount' in report:
        parts.append(f"recent={report['recentCount']}")

    if report.get('failures'):
        parts.append(f"failures={report['failures']}")

    return ", ".join(parts)


def summarize_decisions(history: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Summarize a decision history into switch counts.

    Args:
        history: Decision entries with 'old_index' and 'new_index'

    Returns:
        Dictionary with total, increases, decreases and the index range
    """
    if not history:
        return {
            'decisions': 0,
            'increases': 0,
            'decreases': 0,
            'lowest_index': None,
            'highest_index': None,
        }

    increases = sum(1 for h in history if h['new_index'] > h['old_index'])
    decreases = sum(1 for h in history if h['new_index'] < h['old_index'])
    indices = [h['new_index'] for h in history]

    return {
        'decisions': len(history),
        'increases': increases,
        'decreases': decreases,
        'lowest_index': min(indices),
        'highest_index': max(indices),
    }
