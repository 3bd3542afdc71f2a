"""
Assignment routes — a teacher's courses as per-grade-level gradebooks.
"""

from fastapi import APIRouter, Depends

from core.assignments import get_teacher_assignments, resolve_exploded_assignment
from core.models import AcademicSettings
from core.store import RecordStore
from routes.deps import get_settings, get_store

router = APIRouter()


@router.get("/teacher/{teacher_id}")
async def teacher_assignments(
    teacher_id: str,
    store: RecordStore = Depends(get_store),
    settings: AcademicSettings = Depends(get_settings),
):
    """Gradebooks grouped by subject, each group in educational grade order."""
    return {"subjects": get_teacher_assignments(store, teacher_id, settings)}


@router.get("/{exploded_id}")
async def assignment_detail(
    exploded_id: str,
    store: RecordStore = Depends(get_store),
    settings: AcademicSettings = Depends(get_settings),
):
    return resolve_exploded_assignment(store, exploded_id, settings)
