"""
store.py — Record store interface and the in-memory adapter.

The core only needs conflict-key upserts and a handful of reads, so any engine
can sit behind RecordStore. InMemoryRecordStore backs demo mode and tests; it
is selected through STORE_BACKEND rather than being a module-level global.

Write semantics shared by every adapter:
- batch writes are all-or-nothing: every row is validated before any is applied
- a batch naming the same conflict key twice is refused with ConflictError
- failures surface as core.errors types and are never retried here
"""

import copy
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from core.config import STORE_BACKEND
from core.errors import ConflictError, NotFoundError, ValidationError
from core.grading import check_grade_value
from core.models import (
    AcademicSettings,
    Activity,
    Assignment,
    ConsolidatedReport,
    GradeLevel,
    Student,
    Subject,
)

logger = logging.getLogger(__name__)

GradeKey = Tuple[str, str, int]  # (course_id, student_id, period)
ReportKey = Tuple[str, int]  # (student_id, period)

GRADE_ROW_FIELDS = (
    "course_id", "student_id", "period", "tasks", "workshops", "attitude", "exam",
    "convivencia_problemas", "llegada_tarde", "presentacion_personal", "observaciones",
)
REPORT_ROW_FIELDS = (
    "student_id", "period", "grade_level_id", "submitted_reports", "director_general_observation",
)


class RecordStore(ABC):
    """Abstract record store. Rows are plain dicts keyed by column name."""

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        """Group a read-modify-write sequence. Adapters without transactions just yield."""
        yield self

    # Students / school structure
    @abstractmethod
    def get_students(self) -> List[Student]: ...

    @abstractmethod
    def get_students_by_grade(self, grade_level_id: str) -> List[Student]: ...

    @abstractmethod
    def bulk_insert_students(self, students: Sequence[Student]) -> List[Student]:
        """Insert students; returns the ones actually stored."""

    @abstractmethod
    def get_grade_levels(self) -> List[GradeLevel]: ...

    @abstractmethod
    def get_subjects(self) -> List[Subject]: ...

    # Courses
    @abstractmethod
    def get_courses(self, teacher_id: Optional[str] = None) -> List[Assignment]: ...

    @abstractmethod
    def get_course(self, course_id: str) -> Assignment: ...

    @abstractmethod
    def save_course_activities(
        self,
        course_id: str,
        task_activities: Dict[int, List[Activity]],
        workshop_activities: Dict[int, List[Activity]],
    ) -> None: ...

    # Grades
    @abstractmethod
    def get_grades(self, course_id: str, student_ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def upsert_grades(self, rows: Sequence[Dict[str, Any]]) -> int:
        """Upsert on (course_id, student_id, period). Returns rows written."""

    # Consolidated reports
    @abstractmethod
    def get_consolidated_reports(self, student_ids: Sequence[str], period: int) -> List[ConsolidatedReport]: ...

    @abstractmethod
    def upsert_consolidated_reports(self, rows: Sequence[Dict[str, Any]]) -> List[ConsolidatedReport]:
        """
        Upsert on (student_id, period). Only the columns present in a row are
        written; absent columns keep their stored value.
        """

    # Settings
    @abstractmethod
    def get_academic_settings(self) -> Optional[AcademicSettings]: ...

    @abstractmethod
    def save_academic_settings(self, settings: AcademicSettings) -> None: ...


# ── In-memory adapter ───────────────────────────────────────────────

class InMemoryRecordStore(RecordStore):
    """Dict-backed store. One re-entrant lock guards every table."""

    def __init__(self):
        self._lock = threading.RLock()
        self._students: Dict[str, Student] = {}
        self._grade_levels: Dict[str, GradeLevel] = {}
        self._subjects: Dict[str, Subject] = {}
        self._courses: Dict[str, Assignment] = {}
        self._grades: Dict[GradeKey, Dict[str, Any]] = {}
        self._reports: Dict[ReportKey, ConsolidatedReport] = {}
        self._settings: Optional[AcademicSettings] = None

    def _tables(self) -> Dict[str, Any]:
        return {
            "_students": self._students,
            "_grade_levels": self._grade_levels,
            "_subjects": self._subjects,
            "_courses": self._courses,
            "_grades": self._grades,
            "_reports": self._reports,
            "_settings": self._settings,
        }

    @contextmanager
    def transaction(self) -> Iterator["InMemoryRecordStore"]:
        """Hold the lock for the whole block; restore every table on error."""
        with self._lock:
            snapshot = copy.deepcopy(self._tables())
            try:
                yield self
            except Exception:
                for name, table in snapshot.items():
                    setattr(self, name, table)
                logger.warning("In-memory transaction rolled back")
                raise

    # ── Seeding helpers (in-memory only) ────────────────────────────

    def add_grade_level(self, grade_level: GradeLevel) -> GradeLevel:
        with self._lock:
            self._grade_levels[grade_level.id] = grade_level.model_copy()
        return grade_level

    def add_subject(self, subject: Subject) -> Subject:
        with self._lock:
            self._subjects[subject.id] = subject.model_copy()
        return subject

    def add_student(self, student: Student) -> Student:
        with self._lock:
            self._students[student.id] = student.model_copy()
        return student

    def add_course(self, course: Assignment) -> Assignment:
        stored = course.model_copy(
            deep=True, update={"students": [], "subject": None, "grade_levels": []}
        )
        with self._lock:
            self._courses[course.id] = stored
        return stored

    # ── Students / school structure ─────────────────────────────────

    def get_students(self) -> List[Student]:
        with self._lock:
            return [s.model_copy() for s in self._students.values()]

    def get_students_by_grade(self, grade_level_id: str) -> List[Student]:
        with self._lock:
            return [s.model_copy() for s in self._students.values() if s.grade_level_id == grade_level_id]

    def bulk_insert_students(self, students: Sequence[Student]) -> List[Student]:
        with self._lock:
            inserted = []
            for student in students:
                if student.id in self._students:
                    logger.warning("Rejected student %s: id already exists", student.id)
                    continue
                if student.grade_level_id is not None and student.grade_level_id not in self._grade_levels:
                    logger.warning(
                        "Rejected student %s: unknown grade level %s", student.id, student.grade_level_id
                    )
                    continue
                self._students[student.id] = student.model_copy()
                inserted.append(student.model_copy())
            return inserted

    def get_grade_levels(self) -> List[GradeLevel]:
        with self._lock:
            return [g.model_copy() for g in self._grade_levels.values()]

    def get_subjects(self) -> List[Subject]:
        with self._lock:
            return [s.model_copy() for s in self._subjects.values()]

    # ── Courses ─────────────────────────────────────────────────────

    def get_courses(self, teacher_id: Optional[str] = None) -> List[Assignment]:
        with self._lock:
            return [
                c.model_copy(deep=True)
                for c in self._courses.values()
                if teacher_id is None or c.teacher_id == teacher_id
            ]

    def get_course(self, course_id: str) -> Assignment:
        with self._lock:
            course = self._courses.get(course_id)
            if course is None:
                raise NotFoundError(f"Course {course_id!r} not found.")
            return course.model_copy(deep=True)

    def save_course_activities(self, course_id, task_activities, workshop_activities) -> None:
        with self._lock:
            course = self._courses.get(course_id)
            if course is None:
                raise NotFoundError(f"Course {course_id!r} not found.")
            self._courses[course_id] = course.model_copy(
                deep=True,
                update={
                    "task_activities": copy.deepcopy(task_activities),
                    "workshop_activities": copy.deepcopy(workshop_activities),
                },
            )

    # ── Grades ──────────────────────────────────────────────────────

    def get_grades(self, course_id, student_ids=None) -> List[Dict[str, Any]]:
        wanted = set(student_ids) if student_ids is not None else None
        with self._lock:
            return [
                copy.deepcopy(row)
                for (cid, sid, _), row in self._grades.items()
                if cid == course_id and (wanted is None or sid in wanted)
            ]

    def upsert_grades(self, rows) -> int:
        staged: Dict[GradeKey, Dict[str, Any]] = {}
        for row in rows:
            key = (row["course_id"], row["student_id"], int(row["period"]))
            if key[2] < 1:
                raise ValidationError(f"Grade row {key}: period must be 1 or greater.")
            if key in staged:
                raise ConflictError(f"Grade row {key} appears twice in one batch.")
            for i, value in enumerate(row.get("tasks") or []):
                check_grade_value(value, f"tasks[{i}]")
            for i, value in enumerate(row.get("workshops") or []):
                check_grade_value(value, f"workshops[{i}]")
            check_grade_value(row.get("attitude"), "attitude")
            check_grade_value(row.get("exam"), "exam")
            staged[key] = {field: copy.deepcopy(row.get(field)) for field in GRADE_ROW_FIELDS}
            staged[key]["period"] = key[2]

        with self._lock:
            self._grades.update(staged)
        return len(staged)

    # ── Consolidated reports ────────────────────────────────────────

    def get_consolidated_reports(self, student_ids, period) -> List[ConsolidatedReport]:
        with self._lock:
            return [
                self._reports[(sid, period)].model_copy(deep=True)
                for sid in dict.fromkeys(student_ids)
                if (sid, period) in self._reports
            ]

    def upsert_consolidated_reports(self, rows) -> List[ConsolidatedReport]:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            staged: Dict[ReportKey, ConsolidatedReport] = {}
            for row in rows:
                key = (row["student_id"], int(row["period"]))
                if key in staged:
                    raise ConflictError(f"Consolidated report {key} appears twice in one batch.")
                values = {f: row[f] for f in REPORT_ROW_FIELDS if f in row}
                existing = self._reports.get(key)
                if existing is None:
                    if not values.get("grade_level_id"):
                        raise ValidationError(f"New consolidated report {key} needs a grade_level_id.")
                    values.setdefault("submitted_reports", {})
                    report = ConsolidatedReport(id=f"cr-{uuid.uuid4().hex[:12]}", updated_at=now, **values)
                else:
                    merged = existing.model_dump()
                    merged.update(values)
                    merged["updated_at"] = now
                    report = ConsolidatedReport(**merged)
                staged[key] = report

            self._reports.update(staged)
            return [r.model_copy(deep=True) for r in staged.values()]

    # ── Settings ────────────────────────────────────────────────────

    def get_academic_settings(self) -> Optional[AcademicSettings]:
        with self._lock:
            return self._settings.model_copy(deep=True) if self._settings else None

    def save_academic_settings(self, settings: AcademicSettings) -> None:
        settings.validate_weights()
        with self._lock:
            self._settings = settings.model_copy(deep=True)


# ── Factory & demo data ─────────────────────────────────────────────

STORE_BACKENDS = {
    "memory": InMemoryRecordStore,
}


def create_store(backend: str = STORE_BACKEND) -> RecordStore:
    """Build the record store named by STORE_BACKEND."""
    try:
        store_cls = STORE_BACKENDS[backend]
    except KeyError:
        raise ValueError(
            f"Unknown STORE_BACKEND {backend!r}. Available: {sorted(STORE_BACKENDS)}"
        )
    logger.info("Using %s record store", backend)
    return store_cls()


def seed_demo_data(store: InMemoryRecordStore) -> InMemoryRecordStore:
    """Load the demo school: three grade levels, three subjects, two courses."""
    for gl in (
        GradeLevel(id="gl-6a", name="6-A", director_id="usr-teacher-1"),
        GradeLevel(id="gl-7b", name="7-B", director_id="usr-teacher-2"),
        GradeLevel(id="gl-8c", name="8-C", is_enabled=False),
    ):
        store.add_grade_level(gl)

    for subject in (
        Subject(id="sub-math", name="Matemáticas"),
        Subject(id="sub-sci", name="Ciencias"),
        Subject(id="sub-hist", name="Historia"),
    ):
        store.add_subject(subject)

    for student in (
        Student(id="stu-1", name="Ana García", grade_level_id="gl-6a"),
        Student(id="stu-2", name="Carlos Rodriguez", grade_level_id="gl-6a"),
        Student(id="stu-3", name="Sofia Martinez", grade_level_id="gl-7b"),
        Student(id="stu-4", name="Luis Hernandez", grade_level_id="gl-7b"),
    ):
        store.add_student(student)

    today = date.today()
    store.add_course(Assignment(
        id="crs-math", subject_id="sub-math", grade_level_ids=["gl-6a", "gl-7b"],
        teacher_id="usr-teacher-1",
        task_activities={1: [Activity(id="act-t1", name="Taller de fracciones", date=today)]},
        workshop_activities={1: [Activity(id="act-w1", name="Exposición", date=today)]},
    ))
    store.add_course(Assignment(
        id="crs-sci", subject_id="sub-sci", grade_level_ids=["gl-6a"], teacher_id="usr-teacher-2",
    ))
    store.save_academic_settings(AcademicSettings(period_count=3, period_weights={1: 30, 2: 30, 3: 40}))
    logger.info("Seeded demo data")
    return store
