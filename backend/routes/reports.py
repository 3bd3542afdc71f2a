"""
Report routes — teacher submissions and the director's consolidated report.
"""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.gradebook import get_student_report_data
from core.models import AcademicSettings, TeacherReportSubmission
from core.reports import (
    get_consolidated_report,
    get_directed_grade_level,
    save_director_observation,
    submit_reports_to_director,
)
from core.store import RecordStore
from routes.deps import get_settings, get_store

router = APIRouter()


class DirectorObservationRequest(BaseModel):
    observation: str = ""


@router.post("/submit")
async def submit(submissions: List[TeacherReportSubmission], store: RecordStore = Depends(get_store)):
    """Merge a batch of teacher submissions (one period) into consolidated reports."""
    reports = submit_reports_to_director(store, submissions)
    return {"submitted": len(reports), "reports": reports}


@router.get("/director/{teacher_id}")
async def directed_grade_level(teacher_id: str, store: RecordStore = Depends(get_store)):
    """The grade level a teacher directs, with its students."""
    grade_level = get_directed_grade_level(store, teacher_id)
    students = sorted(store.get_students_by_grade(grade_level.id), key=lambda s: s.name)
    return {"grade_level": grade_level, "students": students}


@router.get("/{grade_level_id}/{student_id}/{period}")
async def consolidated_report(
    grade_level_id: str,
    student_id: str,
    period: int,
    store: RecordStore = Depends(get_store),
    settings: AcademicSettings = Depends(get_settings),
):
    """The director's view: every subject's submission plus the student's grades."""
    return {
        "report": get_consolidated_report(store, student_id, grade_level_id, period),
        "subjects": get_student_report_data(store, student_id, grade_level_id, settings),
    }


@router.put("/{grade_level_id}/{student_id}/{period}/observation")
async def director_observation(
    grade_level_id: str,
    student_id: str,
    period: int,
    req: DirectorObservationRequest,
    store: RecordStore = Depends(get_store),
):
    return save_director_observation(store, student_id, grade_level_id, period, req.observation)
