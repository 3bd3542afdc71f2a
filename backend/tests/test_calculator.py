"""
Tests for core/calculator.py — calculate_period, compute_final_summary, settings helpers.
"""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.calculator import (
    calculate_period,
    compute_final_summary,
    default_academic_settings,
    distribute_period_weights,
    summarize_gradebook,
)
from core.grading import PerformanceLevel
from core.models import AcademicSettings, PeriodGradeData, StudentGradeRecord


@pytest.fixture
def settings():
    return AcademicSettings(period_count=3, period_weights={1: 30, 2: 30, 3: 40})


def _flat_period(value):
    """A period whose definitive equals `value` with one task and one workshop."""
    return PeriodGradeData(tasks=[value], workshops=[value], attitude=value, exam=value)


COUNTS = {1: (1, 1), 2: (1, 1), 3: (1, 1)}


class TestCalculatePeriod:
    """Tests for calculate_period."""

    def test_weighted_definitive(self):
        data = PeriodGradeData(tasks=[8, 10], workshops=[], attitude=7, exam=6)
        result = calculate_period(data, 2, 1)
        assert result["task_average"] == pytest.approx(9.0)
        assert result["workshop_average"] == 0
        assert result["definitive"] == pytest.approx(5.6)
        assert result["performance"] == PerformanceLevel.BAJO

    def test_all_null_with_no_activities(self):
        result = calculate_period(PeriodGradeData(), 0, 0)
        assert result["definitive"] == 0
        assert result["performance"] == PerformanceLevel.BAJO

    def test_none_period_counts_as_empty(self):
        assert calculate_period(None, 3, 2)["definitive"] == 0

    def test_short_grade_list_pads_with_zero(self):
        # 3 activities, only one graded
        data = PeriodGradeData(tasks=[9])
        assert calculate_period(data, 3, 0)["task_average"] == pytest.approx(3.0)

    def test_slots_beyond_count_are_ignored(self):
        data = PeriodGradeData(tasks=[10, 10, 0])
        assert calculate_period(data, 2, 0)["task_average"] == pytest.approx(10.0)

    def test_null_slots_count_as_zero(self):
        data = PeriodGradeData(workshops=[None, 8])
        assert calculate_period(data, 2, 2)["workshop_average"] == pytest.approx(4.0)

    def test_out_of_range_values_are_clamped(self):
        data = PeriodGradeData(tasks=[15], workshops=[-3], attitude=10, exam=10)
        result = calculate_period(data, 1, 1)
        assert result["task_average"] == 10
        assert result["workshop_average"] == 0
        assert result["definitive"] == pytest.approx(8.0)

    def test_perfect_period_is_superior(self):
        result = calculate_period(_flat_period(10), 1, 1)
        assert result["definitive"] == pytest.approx(10.0)
        assert result["performance"] == PerformanceLevel.SUPERIOR


class TestComputeFinalSummary:
    """Tests for compute_final_summary."""

    def test_weighted_final(self, settings):
        record = StudentGradeRecord(
            student_id="s1",
            periods={1: _flat_period(8.0), 2: _flat_period(9.0), 3: _flat_period(6.5)},
        )
        result = compute_final_summary(record, settings, COUNTS)
        assert result["periods"][1] == pytest.approx(8.0)
        assert result["periods"][2] == pytest.approx(9.0)
        assert result["periods"][3] == pytest.approx(6.5)
        assert result["weighted_final"] == pytest.approx(7.7)
        assert result["performance"] == PerformanceLevel.BASICO

    def test_all_zero_grades(self, settings):
        record = StudentGradeRecord(student_id="s1", periods={p: _flat_period(0) for p in (1, 2, 3)})
        result = compute_final_summary(record, settings, COUNTS)
        assert result["weighted_final"] == 0
        assert result["performance"] == PerformanceLevel.BAJO

    def test_missing_periods_count_as_zero(self, settings):
        record = StudentGradeRecord(student_id="s1", periods={3: _flat_period(10)})
        result = compute_final_summary(record, settings, COUNTS)
        assert result["periods"] == {1: 0, 2: 0, 3: pytest.approx(10.0)}
        assert result["weighted_final"] == pytest.approx(4.0)

    def test_missing_counts_mean_no_activities(self, settings):
        record = StudentGradeRecord(student_id="s1", periods={1: PeriodGradeData(tasks=[10], exam=10)})
        result = compute_final_summary(record, settings, {})
        # tasks ignored with a count of 0; exam alone gives 4.0
        assert result["periods"][1] == pytest.approx(4.0)

    def test_zero_weighted_period_contributes_nothing(self):
        settings = AcademicSettings(period_count=2, period_weights={1: 100, 2: 0})
        record = StudentGradeRecord(student_id="s1", periods={1: _flat_period(7), 2: _flat_period(10)})
        result = compute_final_summary(record, settings, {1: (1, 1), 2: (1, 1)})
        assert result["weighted_final"] == pytest.approx(7.0)

    def test_idempotent(self, settings):
        record = StudentGradeRecord(
            student_id="s1",
            periods={1: _flat_period(8.0), 2: _flat_period(9.0), 3: _flat_period(6.5)},
        )
        first = compute_final_summary(record, settings, COUNTS)
        second = compute_final_summary(record, settings, COUNTS)
        assert first == second


class TestSummarizeGradebook:
    """Tests for summarize_gradebook."""

    def test_one_row_per_student(self, settings):
        records = [
            StudentGradeRecord(student_id="a", periods={1: _flat_period(10)}),
            StudentGradeRecord(student_id="b"),
        ]
        rows = summarize_gradebook(records, settings, COUNTS)
        assert [r["student_id"] for r in rows] == ["a", "b"]
        assert rows[0]["weighted_final"] == pytest.approx(3.0)
        assert rows[1]["weighted_final"] == 0


class TestSettingsHelpers:
    """Tests for distribute_period_weights and default_academic_settings."""

    def test_remainder_goes_to_first_periods(self):
        assert distribute_period_weights(3) == {1: 34, 2: 33, 3: 33}

    def test_even_split(self):
        assert distribute_period_weights(4) == {1: 25, 2: 25, 3: 25, 4: 25}

    @pytest.mark.parametrize("count", [1, 2, 3, 6, 7])
    def test_always_sums_to_100(self, count):
        assert sum(distribute_period_weights(count).values()) == 100

    def test_defaults_are_valid(self):
        settings = default_academic_settings()
        settings.validate_weights()
        assert settings.total_weight() == 100
