"""
activities.py — Activity-keyed views over positional grade lists.

Grades are stored as lists aligned with the period's activity list. Editing
them positionally is fragile: removing activity i by index shifts every later
grade onto the wrong activity if the two lists ever disagree. These helpers
convert to a map keyed by activity id, edit that, and rebuild the lists.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from core.errors import NotFoundError, ValidationError
from core.models import Activity, Assignment, StudentGradeRecord

logger = logging.getLogger(__name__)

ACTIVITY_KINDS = ("tasks", "workshops")

KeyedGrades = Dict[str, Optional[float]]


def keyed_grades(activities: Sequence[Activity], grades: Sequence[Optional[float]]) -> KeyedGrades:
    """
    Migrate a legacy positional grade list to {activity_id: grade}.

    Activities without a grade slot map to None. Slots past the last
    activity have no owner and are dropped.
    """
    if len(grades) > len(activities):
        logger.warning(
            "Dropping %d orphan grade slot(s) beyond %d activities",
            len(grades) - len(activities), len(activities),
        )
    return {
        activity.id: (grades[i] if i < len(grades) else None)
        for i, activity in enumerate(activities)
    }


def positional_grades(activities: Sequence[Activity], keyed: KeyedGrades) -> List[Optional[float]]:
    """Rebuild the positional list aligned with `activities`."""
    return [keyed.get(activity.id) for activity in activities]


def _activity_map(assignment: Assignment, kind: str) -> Dict[int, List[Activity]]:
    if kind == "tasks":
        return assignment.task_activities
    if kind == "workshops":
        return assignment.workshop_activities
    raise ValidationError(f"Unknown activity kind {kind!r}; expected one of {ACTIVITY_KINDS}.")


def add_activity(assignment: Assignment, period: int, kind: str, activity: Activity) -> Assignment:
    """Append an activity. Existing grade lists need no change: the new slot reads as None."""
    updated = assignment.model_copy(deep=True)
    activities = _activity_map(updated, kind)
    activities[period] = list(activities.get(period, [])) + [activity]
    return updated


def remove_activity(
    assignment: Assignment,
    records: List[StudentGradeRecord],
    period: int,
    kind: str,
    activity_id: str,
) -> Tuple[Assignment, List[StudentGradeRecord]]:
    """
    Remove one activity from a course period and drop its grade from every
    student record, matching by activity id.

    Returns updated copies; the inputs are not modified.
    """
    updated = assignment.model_copy(deep=True)
    activities_by_period = _activity_map(updated, kind)
    current = list(activities_by_period.get(period, []))

    if not any(a.id == activity_id for a in current):
        raise NotFoundError(f"Activity {activity_id!r} not found in period {period} {kind}.")

    remaining = [a for a in current if a.id != activity_id]
    activities_by_period[period] = remaining

    updated_records = []
    for record in records:
        new_record = record.model_copy(deep=True)
        period_data = new_record.periods.get(period)
        if period_data is not None:
            keyed = keyed_grades(current, getattr(period_data, kind))
            keyed.pop(activity_id, None)
            setattr(period_data, kind, positional_grades(remaining, keyed))
        updated_records.append(new_record)

    logger.info(
        "Removed %s activity %s from course %s period %d (%d student records updated)",
        kind, activity_id, assignment.id, period, len(updated_records),
    )
    return updated, updated_records
