"""
Student routes — roster listing, bulk CSV import and export.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from core.importer import export_students_csv, format_import_summary, import_students
from core.store import RecordStore
from routes.deps import get_store

router = APIRouter()
logger = logging.getLogger(__name__)

SAMPLE_DATA_DIR = Path(__file__).resolve().parent.parent / "sample_data"
SAMPLE_FILES = {
    "students": SAMPLE_DATA_DIR / "sample_students.csv",
}
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _import_response(result):
    return {
        "summary": format_import_summary(result),
        "inserted": result.inserted,
        "skipped_duplicates": result.skipped_duplicates,
        "skipped_unresolved": result.skipped_unresolved,
        "rejected": result.rejected,
        "unresolved_grade_names": result.unresolved_grade_names,
        "students": result.students,
    }


@router.get("")
async def list_students(grade_level_id: Optional[str] = None, store: RecordStore = Depends(get_store)):
    students = store.get_students_by_grade(grade_level_id) if grade_level_id else store.get_students()
    return {"students": sorted(students, key=lambda s: s.name.lower())}


@router.post("/import")
async def import_file(
    file: UploadFile = File(...),
    grade_level_id: Optional[str] = Form(None),
    store: RecordStore = Depends(get_store),
):
    """
    Import a ';'-separated student file. With grade_level_id every row goes
    to that grade level and the file's grade column is ignored.
    """
    ext = Path(file.filename or "").suffix.lower()
    if ext not in (".csv", ".txt"):
        raise HTTPException(400, f"Unsupported file type: {ext or 'none'}. Use a ';'-separated CSV.")

    raw = await file.read(MAX_UPLOAD_BYTES + 1)
    if len(raw) > MAX_UPLOAD_BYTES:
        raise HTTPException(413, "File too large.")

    result = import_students(store, raw, grade_level_id or None)
    logger.info("Imported '%s': %d students", file.filename, result.inserted)
    return _import_response(result)


@router.post("/import/sample/{dataset_name}")
async def import_sample(dataset_name: str, store: RecordStore = Depends(get_store)):
    """Import one of the bundled sample rosters."""
    if dataset_name not in SAMPLE_FILES:
        raise HTTPException(404, f"Sample dataset '{dataset_name}' not found. Available: {list(SAMPLE_FILES.keys())}")

    file_path = SAMPLE_FILES[dataset_name]
    if not file_path.exists():
        raise HTTPException(404, f"Sample file not found on disk: {file_path}")

    return _import_response(import_students(store, file_path.read_bytes()))


@router.get("/export")
async def export_file(grade_level_id: Optional[str] = None, store: RecordStore = Depends(get_store)):
    students = store.get_students_by_grade(grade_level_id) if grade_level_id else store.get_students()
    content = export_students_csv(students, store.get_grade_levels())
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="estudiantes.csv"'},
    )
