"""
reports.py — Cross-subject consolidated reports for group directors.

Each teacher sends one DirectorReportSubmission per student and period for
their subject. The director sees one ConsolidatedReport per (student, period)
holding every subject's submission side by side, plus their own general
observation.

Merging rules:
- submitted_reports merges by subject id: {**existing, **new}. A teacher
  re-sending a subject replaces only that subject's entry.
- director_general_observation is never written by teacher submissions.
- grade_level_id is written only when the record is created, by either
  teacher submissions or the director observation.
"""

import logging
from typing import Dict, List, Sequence

from core.errors import GradebookError, NotFoundError, StoreError, ValidationError
from core.models import ConsolidatedReport, DirectorReportSubmission, GradeLevel, TeacherReportSubmission
from core.store import RecordStore

logger = logging.getLogger(__name__)


def _group_by_student(
    submissions: Sequence[TeacherReportSubmission],
) -> Dict[str, Dict[str, DirectorReportSubmission]]:
    grouped: Dict[str, Dict[str, DirectorReportSubmission]] = {}
    for sub in submissions:
        grouped.setdefault(sub.student_id, {})[sub.subject_id] = sub.report_data
    return grouped


def submit_reports_to_director(
    store: RecordStore,
    submissions: Sequence[TeacherReportSubmission],
) -> List[ConsolidatedReport]:
    """
    Merge a batch of teacher submissions into the consolidated reports.

    All submissions must share one period. Existing reports are fetched in a
    single read, merged per student, and written back in a single upsert keyed
    on (student_id, period). Returns the stored reports.
    """
    if not submissions:
        return []

    periods = {sub.period for sub in submissions}
    if len(periods) > 1:
        raise ValidationError(f"All submissions in a batch must share one period, got {sorted(periods)}.")
    period = periods.pop()

    by_student = _group_by_student(submissions)
    grade_level_of = {sub.student_id: sub.grade_level_id for sub in submissions}

    try:
        with store.transaction() as tx:
            existing = {
                r.student_id: r
                for r in tx.get_consolidated_reports(list(by_student), period)
            }

            rows = []
            for student_id, new_reports in by_student.items():
                current = existing.get(student_id)
                merged = dict(current.submitted_reports) if current else {}
                merged.update(new_reports)

                row = {
                    "student_id": student_id,
                    "period": period,
                    "submitted_reports": merged,
                }
                if current is None:
                    row["grade_level_id"] = grade_level_of[student_id]
                rows.append(row)

            saved = tx.upsert_consolidated_reports(rows)
    except GradebookError:
        raise
    except Exception as e:
        logger.exception("Consolidated report upsert failed for period %d", period)
        raise StoreError(f"Could not save consolidated reports: {e}") from e

    logger.info(
        "Merged %d submission(s) into %d consolidated report(s) for period %d",
        len(submissions), len(saved), period,
    )
    return saved


def get_consolidated_report(store: RecordStore, student_id: str, grade_level_id: str, period: int) -> ConsolidatedReport:
    """Stored report, or an empty unsaved one (id=None) when nothing was submitted yet."""
    found = store.get_consolidated_reports([student_id], period)
    if found:
        return found[0]
    return ConsolidatedReport(student_id=student_id, grade_level_id=grade_level_id, period=period)


def save_director_observation(
    store: RecordStore,
    student_id: str,
    grade_level_id: str,
    period: int,
    observation: str,
) -> ConsolidatedReport:
    """
    Director-only write: the general observation, leaving submitted_reports
    untouched. grade_level_id is only used when this creates the record.
    """
    row = {
        "student_id": student_id,
        "period": period,
        "director_general_observation": observation or "",
    }
    try:
        with store.transaction() as tx:
            if not tx.get_consolidated_reports([student_id], period):
                row["grade_level_id"] = grade_level_id
            saved = tx.upsert_consolidated_reports([row])
    except GradebookError:
        raise
    except Exception as e:
        logger.exception("Director observation save failed for student %s", student_id)
        raise StoreError(f"Could not save the director observation: {e}") from e

    logger.info("Saved director observation for student %s period %d", student_id, period)
    return saved[0]


def get_directed_grade_level(store: RecordStore, teacher_id: str) -> GradeLevel:
    """The grade level whose group director is this teacher."""
    for grade_level in store.get_grade_levels():
        if grade_level.director_id == teacher_id:
            return grade_level
    raise NotFoundError(f"Teacher {teacher_id!r} is not the director of any grade level.")
