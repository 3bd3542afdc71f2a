"""
assignments.py — Per-grade-level gradebooks from multi-grade courses.

A course may cover several grade levels. Teachers work one gradebook per
class section, so each course is "exploded" into one view per grade level:
- id "{course_id}_{grade_level_id}", original_id pointing back to the course
- students restricted to that grade level
- activities shared verbatim (they belong to the course, not the section)

Views are derived on every read and never persisted.
"""

import logging
import re
import unicodedata
from datetime import date
from typing import Dict, List, Optional, Tuple

from core.errors import NotFoundError, ValidationError
from core.models import (
    AcademicSettings,
    Activity,
    Assignment,
    ExplodedAssignment,
    GroupedAssignments,
)
from core.store import RecordStore

logger = logging.getLogger(__name__)

EXPLODED_ID_SEPARATOR = "_"
DEFAULT_ACTIVITY_NAME = "Actividad 1"

# Named early-years levels, checked in order ("pre-jardin" contains "jardin").
GRADE_LEVEL_ORDER = [
    ("pre-jardin", 1), ("pre jardin", 1), ("prejardin", 1), ("pre-kinder", 1), ("prekinder", 1),
    ("jardin", 2), ("kindergarten", 2), ("kinder", 2),
    ("transicion", 3), ("transition", 3),
]
NUMERIC_GRADE_OFFSET = 3
UNKNOWN_GRADE_SORT_VALUE = 999


# ── Grade level ordering ────────────────────────────────────────────

def _normalize_name(name: str) -> str:
    text = unicodedata.normalize("NFD", name.strip().lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return text.replace("°", "").replace("º", "")


def grade_level_sort_value(name: Optional[str]) -> int:
    """
    Educational sort key: pre-kindergarten < kindergarten < transition <
    numeric grades ascending < anything unrecognized.
    """
    if not name:
        return UNKNOWN_GRADE_SORT_VALUE
    normalized = _normalize_name(name)

    for key, value in GRADE_LEVEL_ORDER:
        if key in normalized:
            return value

    match = re.match(r"^(\d+)", normalized)
    if match:
        return int(match.group(1)) + NUMERIC_GRADE_OFFSET

    return UNKNOWN_GRADE_SORT_VALUE


def sort_by_grade_level(views: List[ExplodedAssignment]) -> List[ExplodedAssignment]:
    return sorted(
        views,
        key=lambda v: (grade_level_sort_value(v.grade_level.name), v.grade_level.name),
    )


# ── Explosion ───────────────────────────────────────────────────────

def explode_assignment(assignment: Assignment) -> List[ExplodedAssignment]:
    grade_levels = {gl.id: gl for gl in assignment.grade_levels}
    views = []
    for grade_id in assignment.grade_level_ids:
        grade_level = grade_levels.get(grade_id)
        if grade_level is None:
            logger.debug("Course %s: grade level %s not resolved, skipped", assignment.id, grade_id)
            continue

        base = assignment.model_dump(exclude={"id", "grade_level_ids", "grade_levels", "students"})
        views.append(ExplodedAssignment(
            **base,
            id=f"{assignment.id}{EXPLODED_ID_SEPARATOR}{grade_id}",
            original_id=assignment.id,
            grade_level_ids=[grade_id],
            grade_level_id=grade_id,
            grade_level=grade_level,
            grade_levels=[grade_level],
            students=[s for s in assignment.students if s.grade_level_id == grade_id],
        ))
    return views


def explode_assignments(assignments: List[Assignment]) -> List[ExplodedAssignment]:
    """One view per (course, resolved grade level) pair."""
    return [view for assignment in assignments for view in explode_assignment(assignment)]


def group_by_subject(views: List[ExplodedAssignment]) -> List[GroupedAssignments]:
    """Teacher dashboard grouping: subject -> its grade-level views in educational order."""
    grouped: Dict[str, GroupedAssignments] = {}
    for view in views:
        if view.subject is None:
            continue
        if view.subject.id not in grouped:
            grouped[view.subject.id] = GroupedAssignments(subject=view.subject, assignments=[])
        grouped[view.subject.id].assignments.append(view)

    for group in grouped.values():
        group.assignments = sort_by_grade_level(group.assignments)
    return list(grouped.values())


def split_exploded_id(exploded_id: str) -> Tuple[str, str]:
    """Split "{course_id}_{grade_level_id}" on the first separator."""
    course_id, sep, grade_id = exploded_id.partition(EXPLODED_ID_SEPARATOR)
    if not sep or not course_id or not grade_id:
        raise ValidationError(
            f"Gradebook id {exploded_id!r} is not of the form '<course>{EXPLODED_ID_SEPARATOR}<grade level>'."
        )
    return course_id, grade_id


# ── Loading from the store ──────────────────────────────────────────

def _default_activities(settings: AcademicSettings, kind: str) -> Dict[int, List[Activity]]:
    # Stable ids so a default activity can be addressed before it is first saved.
    today = date.today()
    return {
        p: [Activity(id=f"default-{kind}-{p}", name=DEFAULT_ACTIVITY_NAME, date=today)]
        for p in settings.periods()
    }


def _hydrate(courses: List[Assignment], store: RecordStore, settings: AcademicSettings) -> List[Assignment]:
    subjects = {s.id: s for s in store.get_subjects()}
    grade_levels = {gl.id: gl for gl in store.get_grade_levels()}
    wanted_grades = {gid for c in courses for gid in c.grade_level_ids}
    students_by_grade: Dict[str, list] = {}
    for student in store.get_students():
        if student.grade_level_id in wanted_grades:
            students_by_grade.setdefault(student.grade_level_id, []).append(student)

    hydrated = []
    for course in courses:
        students = []
        seen = set()
        for gid in course.grade_level_ids:
            for student in students_by_grade.get(gid, []):
                if student.id not in seen:
                    seen.add(student.id)
                    students.append(student)

        hydrated.append(course.model_copy(update={
            "subject": subjects.get(course.subject_id),
            "grade_levels": [grade_levels[gid] for gid in course.grade_level_ids if gid in grade_levels],
            "students": students,
            "task_activities": course.task_activities or _default_activities(settings, "tasks"),
            "workshop_activities": course.workshop_activities or _default_activities(settings, "workshops"),
        }))
    return hydrated


def load_assignments(
    store: RecordStore,
    settings: AcademicSettings,
    teacher_id: Optional[str] = None,
) -> List[Assignment]:
    """Courses joined with their subject, grade levels and students."""
    courses = store.get_courses(teacher_id)
    if not courses:
        return []
    return _hydrate(courses, store, settings)


def load_course(store: RecordStore, course_id: str, settings: AcademicSettings) -> Assignment:
    return _hydrate([store.get_course(course_id)], store, settings)[0]


def get_teacher_assignments(
    store: RecordStore,
    teacher_id: str,
    settings: AcademicSettings,
) -> List[GroupedAssignments]:
    return group_by_subject(explode_assignments(load_assignments(store, settings, teacher_id)))


def resolve_exploded_assignment(
    store: RecordStore,
    exploded_id: str,
    settings: AcademicSettings,
) -> ExplodedAssignment:
    """Rebuild the gradebook view behind an exploded id."""
    course_id, grade_id = split_exploded_id(exploded_id)
    course = load_course(store, course_id, settings)
    if grade_id not in course.grade_level_ids:
        raise NotFoundError(f"Course {course_id!r} does not cover grade level {grade_id!r}.")

    for view in explode_assignment(course):
        if view.grade_level_id == grade_id:
            return view
    raise NotFoundError(f"Grade level {grade_id!r} not found.")
