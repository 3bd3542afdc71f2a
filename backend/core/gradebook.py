"""
gradebook.py — Reading and saving course grades, and shaping them for reports.

Stored rows are flat: one per (course, student, period). Records handed to
callers always carry every configured period, so a student with no grades yet
gets an all-null record instead of a missing one.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from core.activities import add_activity, remove_activity
from core.assignments import load_assignments, load_course
from core.calculator import (
    activity_counts_for,
    calculate_period,
    compute_final_summary,
    default_academic_settings,
    summarize_gradebook,
)
from core.errors import NotFoundError, ValidationError
from core.grading import PASSING_GRADE
from core.models import (
    AcademicSettings,
    Activity,
    Assignment,
    DirectorReportSubmission,
    ExplodedAssignment,
    PeriodGradeData,
    PeriodView,
    Student,
    StudentGradeRecord,
    Summary,
    TeacherReportSubmission,
)
from core.store import RecordStore

logger = logging.getLogger(__name__)

PENDING_BULLET = "• {name}"
GRADED_BULLET = "• {name} ({grade:g})"


# ── Row mapping ─────────────────────────────────────────────────────

def _period_from_row(row: Dict[str, Any]) -> PeriodGradeData:
    return PeriodGradeData(
        tasks=list(row.get("tasks") or []),
        workshops=list(row.get("workshops") or []),
        attitude=row.get("attitude"),
        exam=row.get("exam"),
        convivencia_problemas=row.get("convivencia_problemas") or "",
        llegada_tarde=bool(row.get("llegada_tarde")),
        presentacion_personal=row.get("presentacion_personal") or "Adecuada",
        observaciones=row.get("observaciones") or "",
    )


def _row_from_period(course_id: str, student_id: str, period: int, data: PeriodGradeData) -> Dict[str, Any]:
    return {
        "course_id": course_id,
        "student_id": student_id,
        "period": int(period),
        "tasks": list(data.tasks),
        "workshops": list(data.workshops),
        "attitude": data.attitude,
        "exam": data.exam,
        "convivencia_problemas": data.convivencia_problemas,
        "llegada_tarde": data.llegada_tarde is True,
        "presentacion_personal": data.presentacion_personal or "Adecuada",
        "observaciones": data.observaciones,
    }


# ── Read / save ─────────────────────────────────────────────────────

def get_assignment_grades(
    store: RecordStore,
    course_id: str,
    students: Sequence[Student],
    settings: AcademicSettings,
) -> List[StudentGradeRecord]:
    """One record per student with every configured period present."""
    rows = store.get_grades(course_id, [s.id for s in students])
    rows_by_student: Dict[str, List[Dict[str, Any]]] = {}
    for row in rows:
        rows_by_student.setdefault(row["student_id"], []).append(row)

    records = []
    for student in students:
        record = StudentGradeRecord.empty(student.id, settings.period_count)
        for row in rows_by_student.get(student.id, []):
            record.periods[int(row["period"])] = _period_from_row(row)
        records.append(record)
    return records


def save_grades(
    store: RecordStore,
    course_id: str,
    records: Sequence[StudentGradeRecord],
    settings: Optional[AcademicSettings] = None,
) -> int:
    """
    Upsert every period of every record in one batch keyed on
    (course_id, student_id, period). Either the whole batch lands or none of it.

    With settings, periods outside 1..period_count are refused before any write.
    """
    if settings is not None:
        allowed = set(settings.periods())
        stray = sorted({p for record in records for p in record.periods} - allowed)
        if stray:
            raise ValidationError(f"Periods {stray} are outside 1..{settings.period_count}.")

    rows = [
        _row_from_period(course_id, record.student_id, period, data)
        for record in records
        for period, data in sorted(record.periods.items())
    ]
    if not rows:
        return 0

    written = store.upsert_grades(rows)
    logger.info("Saved %d grade rows for course %s", written, course_id)
    return written


# ── Teacher -> director submissions ─────────────────────────────────

def _graded_activities(activities: Sequence[Activity], grades: Sequence[Any]):
    for i, activity in enumerate(activities):
        yield activity, (grades[i] if i < len(grades) else None)


def build_report_data(
    period_data: PeriodGradeData,
    task_activities: Sequence[Activity],
    workshop_activities: Sequence[Activity],
) -> DirectorReportSubmission:
    """
    Summarize one student's period for the group director:
    pending (ungraded), insufficient (< 6.0) and positive (>= 6.0) activities.
    """
    graded = list(_graded_activities(task_activities, period_data.tasks)) + list(
        _graded_activities(workshop_activities, period_data.workshops)
    )

    pending = [PENDING_BULLET.format(name=a.name) for a, g in graded if g is None]
    insufficient = [
        GRADED_BULLET.format(name=a.name, grade=g) for a, g in graded if g is not None and g < PASSING_GRADE
    ]
    positive = [
        GRADED_BULLET.format(name=a.name, grade=g) for a, g in graded if g is not None and g >= PASSING_GRADE
    ]

    return DirectorReportSubmission(
        pending_activities="\n".join(pending),
        insufficient_activities="\n".join(insufficient),
        positive_notes="\n".join(positive),
        teacher_observation=period_data.observaciones or "",
        convivencia_problemas=period_data.convivencia_problemas or "",
        llegada_tarde=bool(period_data.llegada_tarde),
        presentacion_personal=period_data.presentacion_personal or "",
    )


def build_teacher_submissions(
    view: ExplodedAssignment,
    records: Sequence[StudentGradeRecord],
    period: int,
) -> List[TeacherReportSubmission]:
    """One submission per student of a gradebook view, for one period."""
    if view.subject is None:
        raise NotFoundError(f"Subject {view.subject_id!r} of course {view.original_id!r} not found.")

    task_activities = view.task_activities.get(period, [])
    workshop_activities = view.workshop_activities.get(period, [])
    roster = {s.id for s in view.students}

    submissions = []
    for record in records:
        if record.student_id not in roster:
            continue
        period_data = record.periods.get(period) or PeriodGradeData()
        submissions.append(TeacherReportSubmission(
            student_id=record.student_id,
            grade_level_id=view.grade_level_id,
            period=period,
            subject_id=view.subject.id,
            report_data=build_report_data(period_data, task_activities, workshop_activities),
        ))
    return submissions


# ── Cross-subject report data ───────────────────────────────────────

def get_student_report_data(
    store: RecordStore,
    student_id: str,
    grade_level_id: str,
    settings: AcademicSettings,
) -> List[Dict[str, Any]]:
    """Per-subject period definitives and weighted final for one student."""
    courses = [
        c for c in load_assignments(store, settings)
        if grade_level_id in c.grade_level_ids
    ]

    report = []
    for course in courses:
        record = get_assignment_grades(store, course.id, [Student(id=student_id, name="")], settings)[0]
        summary = compute_final_summary(record, settings, activity_counts_for(course, settings))
        report.append({
            "course_id": course.id,
            "subject": course.subject.model_dump() if course.subject else None,
            "period_grades": {
                p: {"final": summary["periods"][p], "obs": record.periods[p].observaciones}
                for p in settings.periods()
            },
            "weighted_final": summary["weighted_final"],
            "performance": summary["performance"],
        })
    return sorted(report, key=lambda r: (r["subject"] or {}).get("name", ""))


# ── Settings & gradebook views ──────────────────────────────────────

def load_academic_settings(store: RecordStore) -> AcademicSettings:
    """Stored settings, or the defaults when none were saved yet."""
    settings = store.get_academic_settings()
    if settings is None:
        logger.debug("No academic settings stored, using defaults")
        return default_academic_settings()
    return settings


def build_gradebook_view(
    view: ExplodedAssignment,
    records: Sequence[StudentGradeRecord],
    settings: AcademicSettings,
    period_view: PeriodView,
) -> Dict[str, Any]:
    """
    Payload for one gradebook screen: either one period's grades with
    definitives, or the cross-period summary.
    """
    payload: Dict[str, Any] = {
        "assignment": view.model_dump(mode="json"),
        "settings": settings.model_dump(),
    }

    if isinstance(period_view, Summary):
        payload["view"] = "summary"
        payload["rows"] = summarize_gradebook(list(records), settings, activity_counts_for(view, settings))
        return payload

    period = period_view.number
    tasks = view.task_activities.get(period, [])
    workshops = view.workshop_activities.get(period, [])
    payload["view"] = period
    payload["rows"] = [
        {
            "student_id": record.student_id,
            "grades": (record.periods.get(period) or PeriodGradeData()).model_dump(),
            **calculate_period(record.periods.get(period), len(tasks), len(workshops)),
        }
        for record in records
    ]
    return payload


# ── Activity edits ──────────────────────────────────────────────────

def add_course_activity(
    store: RecordStore,
    course_id: str,
    period: int,
    kind: str,
    activity: Activity,
    settings: AcademicSettings,
) -> Assignment:
    course = load_course(store, course_id, settings)
    updated = add_activity(course, period, kind, activity)
    store.save_course_activities(course_id, updated.task_activities, updated.workshop_activities)
    return updated


def remove_course_activity(
    store: RecordStore,
    course_id: str,
    period: int,
    kind: str,
    activity_id: str,
    settings: AcademicSettings,
) -> Assignment:
    """
    Delete an activity and its grade slot for every student of the course,
    across all of its grade levels, in one transaction.

    Reads happen inside the transaction and only the edited period's stored
    rows are written back, so grades in other fields and periods are never
    overwritten from a stale copy.
    """
    with store.transaction() as tx:
        course = load_course(tx, course_id, settings)
        records = get_assignment_grades(tx, course_id, course.students, settings)
        graded = {r["student_id"] for r in tx.get_grades(course_id) if int(r["period"]) == period}
        updated, updated_records = remove_activity(course, records, period, kind, activity_id)

        tx.save_course_activities(course_id, updated.task_activities, updated.workshop_activities)
        save_grades(tx, course_id, [
            StudentGradeRecord(student_id=r.student_id, periods={period: r.periods[period]})
            for r in updated_records
            if r.student_id in graded
        ])
    return updated
