"""
calculator.py — Period definitives and weighted final grades.

Period definitive (0-10):
- Tasks average: 20%
- Workshops average: 20%
- Attitude: 20%
- Exam: 40%

Averages divide by the number of activities defined for the period, not by
the number of grades entered, so an ungraded activity pulls the average down.
The weighted final combines every period's definitive by its configured
weight. Everything here is pure: no store access, no exceptions.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.config import DEFAULT_PERIOD_COUNT
from core.grading import clamp_grade, get_performance_level
from core.models import AcademicSettings, Assignment, PeriodGradeData, StudentGradeRecord

TASKS_WEIGHT = 0.20
WORKSHOPS_WEIGHT = 0.20
ATTITUDE_WEIGHT = 0.20
EXAM_WEIGHT = 0.40

ActivityCounts = Dict[int, Tuple[int, int]]


# ── Helpers ─────────────────────────────────────────────────────────

def _value(grade: Optional[float]) -> float:
    clamped = clamp_grade(grade)
    return 0.0 if clamped is None else clamped


def _average(grades: Sequence[Optional[float]], activity_count: int) -> float:
    count = max(activity_count, 0)
    total = sum(_value(g) for g in list(grades)[:count])
    return total / max(count, 1)


# ── Period grade ────────────────────────────────────────────────────

def calculate_period(
    period_data: Optional[PeriodGradeData],
    task_activity_count: int,
    workshop_activity_count: int,
) -> Dict[str, Any]:
    """
    Compute one student's definitive grade and performance for one period.

    Grade arrays may be shorter than the activity count (activities added
    after grading began); missing slots count as 0. Slots beyond the count
    are ignored.
    """
    data = period_data or PeriodGradeData()

    task_avg = _average(data.tasks, task_activity_count)
    workshop_avg = _average(data.workshops, workshop_activity_count)

    definitive = (
        task_avg * TASKS_WEIGHT
        + workshop_avg * WORKSHOPS_WEIGHT
        + _value(data.attitude) * ATTITUDE_WEIGHT
        + _value(data.exam) * EXAM_WEIGHT
    )

    return {
        "task_average": task_avg,
        "workshop_average": workshop_avg,
        "definitive": definitive,
        "performance": get_performance_level(definitive),
    }


# ── Final summary ───────────────────────────────────────────────────

def compute_final_summary(
    record: StudentGradeRecord,
    settings: AcademicSettings,
    activity_counts: ActivityCounts,
) -> Dict[str, Any]:
    """
    Combine every configured period's definitive into the weighted final.

    Periods missing from the record count as all-null (definitive 0).
    Periods missing from activity_counts count as having no activities.
    Weights are not validated here; callers check settings before use.
    """
    periods: Dict[int, float] = {}
    weighted_final = 0.0

    for p in settings.periods():
        task_count, workshop_count = activity_counts.get(p, (0, 0))
        definitive = calculate_period(record.periods.get(p), task_count, workshop_count)["definitive"]
        periods[p] = definitive
        weight = settings.period_weights.get(p, 0) / 100
        weighted_final += definitive * weight

    return {
        "periods": periods,
        "weighted_final": weighted_final,
        "performance": get_performance_level(weighted_final),
    }


def activity_counts_for(assignment: Assignment, settings: AcademicSettings) -> ActivityCounts:
    """Per-period (task_count, workshop_count) for a course."""
    return {
        p: (
            len(assignment.task_activities.get(p, [])),
            len(assignment.workshop_activities.get(p, [])),
        )
        for p in settings.periods()
    }


def summarize_gradebook(
    records: List[StudentGradeRecord],
    settings: AcademicSettings,
    activity_counts: ActivityCounts,
) -> List[Dict[str, Any]]:
    """Final summary rows for a whole gradebook, one per student."""
    rows = []
    for record in records:
        summary = compute_final_summary(record, settings, activity_counts)
        summary["student_id"] = record.student_id
        rows.append(summary)
    return rows


# ── Academic settings ───────────────────────────────────────────────

def distribute_period_weights(period_count: int) -> Dict[int, int]:
    """
    Split 100% evenly across periods, giving the remainder to the first ones.
    e.g. 3 -> {1: 34, 2: 33, 3: 33}
    """
    count = max(period_count, 1)
    equal = 100 // count
    weights = {p: equal for p in range(1, count + 1)}
    for p in range(1, 100 - equal * count + 1):
        weights[p] += 1
    return weights


def default_academic_settings() -> AcademicSettings:
    if DEFAULT_PERIOD_COUNT == 3:
        weights: Dict[int, float] = {1: 30, 2: 30, 3: 40}
    else:
        weights = dict(distribute_period_weights(DEFAULT_PERIOD_COUNT))
    return AcademicSettings(period_count=max(DEFAULT_PERIOD_COUNT, 1), period_weights=weights)
