"""
models.py — pydantic data model for courses, grades and consolidated reports.

Grade values use None for "not graded yet". That state is kept through JSON
(null) and is never coerced to 0 outside the calculators.
"""

import datetime
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from core.errors import ValidationError

Grade = Optional[float]


def _new_id() -> str:
    return uuid.uuid4().hex


# ── School structure ────────────────────────────────────────────────

class Subject(BaseModel):
    id: str
    name: str


class GradeLevel(BaseModel):
    id: str
    name: str
    is_enabled: bool = True
    director_id: Optional[str] = None


class Student(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    grade_level_id: Optional[str] = None


class Activity(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    date: datetime.date


# ── Grades ──────────────────────────────────────────────────────────

class PeriodGradeData(BaseModel):
    # 20% notes and homework
    tasks: List[Grade] = Field(default_factory=list)
    # 20% workshops and presentations
    workshops: List[Grade] = Field(default_factory=list)
    # 20% attitude
    attitude: Grade = None
    # 40% exam
    exam: Grade = None

    convivencia_problemas: str = ""
    llegada_tarde: bool = False
    presentacion_personal: str = "Adecuada"
    observaciones: str = ""


class StudentGradeRecord(BaseModel):
    student_id: str
    periods: Dict[int, PeriodGradeData] = Field(default_factory=dict)

    @classmethod
    def empty(cls, student_id: str, period_count: int) -> "StudentGradeRecord":
        return cls(
            student_id=student_id,
            periods={p: PeriodGradeData() for p in range(1, period_count + 1)},
        )


class AcademicSettings(BaseModel):
    period_count: int = Field(ge=1)
    period_weights: Dict[int, float]

    def total_weight(self) -> float:
        return sum(self.period_weights.get(p, 0) for p in self.periods())

    def periods(self) -> List[int]:
        return list(range(1, self.period_count + 1))

    def validate_weights(self) -> "AcademicSettings":
        """Raise ValidationError unless periods 1..N carry weights summing to 100."""
        expected = set(self.periods())
        configured = set(self.period_weights)
        if configured != expected:
            raise ValidationError(
                f"Period weights must cover exactly periods {sorted(expected)}, "
                f"got {sorted(configured)}."
            )
        if any(w < 0 or w > 100 for w in self.period_weights.values()):
            raise ValidationError("Each period weight must be between 0 and 100.")
        total = self.total_weight()
        if abs(total - 100) > 1e-9:
            raise ValidationError(f"Period weights must sum to exactly 100, got {total:g}.")
        return self


# ── Courses ─────────────────────────────────────────────────────────

class Assignment(BaseModel):
    """A course: one subject taught by one teacher to one or more grade levels."""

    id: str
    subject_id: str
    grade_level_ids: List[str] = Field(default_factory=list)
    teacher_id: str
    task_activities: Dict[int, List[Activity]] = Field(default_factory=dict)
    workshop_activities: Dict[int, List[Activity]] = Field(default_factory=dict)
    students: List[Student] = Field(default_factory=list)

    # Populated on read
    subject: Optional[Subject] = None
    grade_levels: List[GradeLevel] = Field(default_factory=list)


class ExplodedAssignment(Assignment):
    """Per-grade-level view of a course. Derived on read, never stored."""

    original_id: str
    grade_level_id: str
    grade_level: GradeLevel


class GroupedAssignments(BaseModel):
    subject: Subject
    assignments: List[ExplodedAssignment]


# ── Director reports ────────────────────────────────────────────────

class DirectorReportSubmission(BaseModel):
    pending_activities: str = ""
    insufficient_activities: str = ""
    positive_notes: str = ""
    teacher_observation: str = ""
    convivencia_problemas: str = ""
    llegada_tarde: bool = False
    presentacion_personal: str = ""


class TeacherReportSubmission(BaseModel):
    student_id: str
    grade_level_id: str
    period: int = Field(ge=1)
    subject_id: str
    report_data: DirectorReportSubmission


class ConsolidatedReport(BaseModel):
    id: Optional[str] = None
    student_id: str
    grade_level_id: str
    period: int
    submitted_reports: Dict[str, DirectorReportSubmission] = Field(default_factory=dict)
    director_general_observation: str = ""
    updated_at: Optional[str] = None


# ── Period / summary view ───────────────────────────────────────────

@dataclass(frozen=True)
class Period:
    number: int


@dataclass(frozen=True)
class Summary:
    pass


SUMMARY = Summary()
PeriodView = Union[Period, Summary]

SUMMARY_ALIASES = {"summary", "final", "resumen"}


def parse_period_view(value: Union[str, int], period_count: int) -> PeriodView:
    """Parse "2" into Period(2) and "summary"/"final" into SUMMARY."""
    text = str(value).strip().lower()
    if text in SUMMARY_ALIASES:
        return SUMMARY
    try:
        number = int(text)
    except ValueError:
        raise ValidationError(f"Unknown period view: {value!r}")
    if not 1 <= number <= period_count:
        raise ValidationError(f"Period {number} is outside 1..{period_count}.")
    return Period(number)
