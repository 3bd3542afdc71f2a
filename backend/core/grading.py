"""
grading.py — Performance tiers for the 0-10 grading scale.

Tiers (inclusive lower bound, evaluated top-down):
  SUPERIOR >= 9.6, ALTO >= 8.0, BASICO >= 6.0, BAJO below that.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from core.errors import ValidationError

MIN_GRADE = 0.0
MAX_GRADE = 10.0
# Activities graded below this are reported as insufficient
PASSING_GRADE = 6.0


class PerformanceLevel(str, Enum):
    SUPERIOR = "SUPERIOR"
    ALTO = "ALTO"
    BASICO = "BASICO"
    BAJO = "BAJO"


# (min_score, level, description), ordered high to low.
PERFORMANCE_BANDS = [
    (9.6, PerformanceLevel.SUPERIOR, "Desempeño Superior"),
    (8.0, PerformanceLevel.ALTO, "Desempeño Alto"),
    (6.0, PerformanceLevel.BASICO, "Desempeño Básico"),
    (0.0, PerformanceLevel.BAJO, "Desempeño Bajo"),
]


def clamp_grade(value: Optional[float]) -> Optional[float]:
    """Clamp a grade into [0, 10]. None and unparseable values stay None."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return max(MIN_GRADE, min(MAX_GRADE, number))


def get_performance_level(score: float) -> PerformanceLevel:
    for min_score, level, _ in PERFORMANCE_BANDS:
        if score >= min_score:
            return level
    return PerformanceLevel.BAJO


def get_grade_thresholds() -> List[Dict[str, Any]]:
    """Return the full tier scale for legends and reference tables."""
    thresholds = []
    for idx, (min_score, level, desc) in enumerate(PERFORMANCE_BANDS):
        max_score = MAX_GRADE if idx == 0 else round(PERFORMANCE_BANDS[idx - 1][0] - 0.01, 2)
        thresholds.append(
            {
                "min": min_score,
                "max": max_score,
                "level": level.value,
                "description": desc,
            }
        )
    return thresholds


def check_grade_value(value: Optional[float], field: str) -> None:
    """
    Persistence-side check. Unlike clamp_grade this rejects out-of-range
    values instead of fixing them.
    """
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field}: grade must be a number, got {value!r}")
    if not MIN_GRADE <= value <= MAX_GRADE:
        raise ValidationError(
            f"{field}: grade {value} is outside the allowed range "
            f"[{MIN_GRADE:g}, {MAX_GRADE:g}]"
        )
