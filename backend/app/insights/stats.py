from __future__ import annotations

import math
import statistics
from typing import Any, Iterable, List, Sequence

from backend.app.insights.types import MetricSample, SeriesStats


def _is_finite_number(x: Any) -> bool:
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        return False
    return math.isfinite(x)


def clean_values(values: Iterable[Any]) -> List[float]:
    """
    Drop None / NaN / +-Infinity / non-numeric entries.
    A malformed value is treated as absent, not as zero. Negatives are kept.
    """
    return [float(v) for v in values if _is_finite_number(v)]


def clean_samples(samples: Iterable[MetricSample]) -> List[MetricSample]:
    return [
        s if isinstance(s.value, float) else MetricSample(date=s.date, value=float(s.value))
        for s in samples
        if s is not None and _is_finite_number(s.value)
    ]


def values_of(samples: Iterable[MetricSample]) -> List[float]:
    return [s.value for s in clean_samples(samples)]


def mean(values: Sequence[Any]) -> float:
    xs = clean_values(values)
    return statistics.mean(xs) if xs else 0.0


def stddev(values: Sequence[Any]) -> float:
    """Sample standard deviation (n-1). 0 when fewer than two points."""
    xs = clean_values(values)
    if len(xs) < 2:
        return 0.0
    return statistics.stdev(xs)


def slope(values: Sequence[Any]) -> float:
    """Least-squares slope per index step. x = position in the series."""
    ys = clean_values(values)
    if len(ys) < 2:
        return 0.0
    x = list(range(len(ys)))
    x_mean = statistics.mean(x)
    y_mean = statistics.mean(ys)

    num = sum((x[i] - x_mean) * (ys[i] - y_mean) for i in range(len(ys)))
    den = sum((x[i] - x_mean) ** 2 for i in range(len(ys)))
    return num / den if den != 0 else 0.0


def summarize(values: Sequence[Any]) -> SeriesStats:
    xs = clean_values(values)
    if not xs:
        return SeriesStats(count=0, mean=0.0, stddev=0.0, min=0.0, max=0.0, slope=0.0)
    return SeriesStats(
        count=len(xs),
        mean=statistics.mean(xs),
        stddev=stddev(xs),
        min=min(xs),
        max=max(xs),
        slope=slope(xs),
    )


def trend(values: Sequence[Any], recent_window: int = 7, baseline_window: int = 7) -> float:
    """
    Relative change of the recent window's mean over the window before it:

        (recent_avg - baseline_avg) / |baseline_avg|

    Returns 0.0 ("no signal") with fewer than recent_window + 1 points or a
    zero baseline mean. The baseline may be shorter than baseline_window when
    history is short.
    """
    xs = clean_values(values)
    if recent_window < 1 or baseline_window < 1 or len(xs) < recent_window + 1:
        return 0.0

    recent = xs[-recent_window:]
    baseline = xs[-(recent_window + baseline_window):-recent_window]
    if not baseline:
        return 0.0

    baseline_avg = statistics.mean(baseline)
    if baseline_avg == 0:
        return 0.0
    return (statistics.mean(recent) - baseline_avg) / abs(baseline_avg)


def is_weekend(d) -> bool:
    # date.weekday(): Monday=0 .. Sunday=6
    return d.weekday() >= 5


def weekday_average(samples: Iterable[MetricSample]) -> float:
    xs = [s.value for s in clean_samples(samples) if not is_weekend(s.date)]
    return statistics.mean(xs) if xs else 0.0


def weekend_average(samples: Iterable[MetricSample]) -> float:
    xs = [s.value for s in clean_samples(samples) if is_weekend(s.date)]
    return statistics.mean(xs) if xs else 0.0
