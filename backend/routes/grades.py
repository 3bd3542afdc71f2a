"""
Grade routes — calculators, performance thresholds and per-grade-level gradebooks.

Gradebooks are addressed by exploded id ("{course_id}_{grade_level_id}").
"""

import logging
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from core.assignments import resolve_exploded_assignment
from core.calculator import calculate_period, compute_final_summary
from core.errors import ValidationError
from core.gradebook import (
    add_course_activity,
    build_gradebook_view,
    build_teacher_submissions,
    get_assignment_grades,
    remove_course_activity,
    save_grades,
)
from core.grading import get_grade_thresholds
from core.models import (
    AcademicSettings,
    Activity,
    PeriodGradeData,
    StudentGradeRecord,
    parse_period_view,
)
from core.reports import submit_reports_to_director
from core.store import RecordStore
from routes.deps import get_settings, get_store

router = APIRouter()
logger = logging.getLogger(__name__)


class PeriodCalculationRequest(BaseModel):
    period_data: Optional[PeriodGradeData] = None
    task_activity_count: int = Field(0, ge=0)
    workshop_activity_count: int = Field(0, ge=0)


class SummaryCalculationRequest(BaseModel):
    record: StudentGradeRecord
    settings: Optional[AcademicSettings] = None
    # period -> [task_count, workshop_count]
    activity_counts: Dict[int, Tuple[int, int]] = Field(default_factory=dict)


class GradebookSaveRequest(BaseModel):
    records: List[StudentGradeRecord]


class ActivityCreateRequest(BaseModel):
    period: int = Field(ge=1)
    kind: str
    activity: Activity


# ── Calculators ─────────────────────────────────────────────────────

@router.post("/calculate/period")
async def calculate_period_grade(req: PeriodCalculationRequest):
    return calculate_period(req.period_data, req.task_activity_count, req.workshop_activity_count)


@router.post("/calculate/summary")
async def calculate_summary(req: SummaryCalculationRequest, stored: AcademicSettings = Depends(get_settings)):
    """Weighted final for one record. Uses the stored settings unless others are given."""
    settings = (req.settings or stored).validate_weights()
    return compute_final_summary(req.record, settings, req.activity_counts)


@router.get("/thresholds")
async def thresholds():
    return {"thresholds": get_grade_thresholds()}


# ── Gradebooks ──────────────────────────────────────────────────────

@router.get("/gradebooks/{exploded_id}")
async def read_gradebook(
    exploded_id: str,
    view: str = "1",
    store: RecordStore = Depends(get_store),
    settings: AcademicSettings = Depends(get_settings),
):
    """One grade-level gradebook: `view` is a period number or "summary"."""
    period_view = parse_period_view(view, settings.period_count)
    assignment = resolve_exploded_assignment(store, exploded_id, settings)
    records = get_assignment_grades(store, assignment.original_id, assignment.students, settings)
    return build_gradebook_view(assignment, records, settings.validate_weights(), period_view)


@router.put("/gradebooks/{exploded_id}")
async def save_gradebook(
    exploded_id: str,
    req: GradebookSaveRequest,
    store: RecordStore = Depends(get_store),
    settings: AcademicSettings = Depends(get_settings),
):
    assignment = resolve_exploded_assignment(store, exploded_id, settings)
    roster = {s.id for s in assignment.students}
    strangers = sorted({r.student_id for r in req.records} - roster)
    if strangers:
        raise ValidationError(f"Students not in gradebook {exploded_id!r}: {strangers}")

    saved = save_grades(store, assignment.original_id, req.records, settings)
    return {"saved_rows": saved}


@router.post("/gradebooks/{exploded_id}/activities")
async def create_activity(
    exploded_id: str,
    req: ActivityCreateRequest,
    store: RecordStore = Depends(get_store),
    settings: AcademicSettings = Depends(get_settings),
):
    """Add an activity to the course behind a gradebook. Every grade level sees it."""
    assignment = resolve_exploded_assignment(store, exploded_id, settings)
    course = add_course_activity(store, assignment.original_id, req.period, req.kind, req.activity, settings)
    return {"task_activities": course.task_activities, "workshop_activities": course.workshop_activities}


@router.delete("/gradebooks/{exploded_id}/activities/{kind}/{period}/{activity_id}")
async def delete_activity(
    exploded_id: str,
    kind: str,
    period: int,
    activity_id: str,
    store: RecordStore = Depends(get_store),
    settings: AcademicSettings = Depends(get_settings),
):
    assignment = resolve_exploded_assignment(store, exploded_id, settings)
    course = remove_course_activity(store, assignment.original_id, period, kind, activity_id, settings)
    return {"task_activities": course.task_activities, "workshop_activities": course.workshop_activities}


@router.post("/gradebooks/{exploded_id}/submit/{period}")
async def submit_to_director(
    exploded_id: str,
    period: int,
    store: RecordStore = Depends(get_store),
    settings: AcademicSettings = Depends(get_settings),
):
    """Send this gradebook's period observations to the group director."""
    parse_period_view(period, settings.period_count)
    assignment = resolve_exploded_assignment(store, exploded_id, settings)
    records = get_assignment_grades(store, assignment.original_id, assignment.students, settings)
    submissions = build_teacher_submissions(assignment, records, period)
    reports = submit_reports_to_director(store, submissions)
    logger.info("Gradebook %s sent %d report(s) for period %d", exploded_id, len(reports), period)
    return {"submitted": len(reports), "reports": reports}
