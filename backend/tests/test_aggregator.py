"""
Tests for core/aggregator.py — CA, term and weekly aggregation.
"""

import os
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.aggregator import (
    aggregate_ca,
    aggregate_term,
    aggregate_weekly,
    collapse_ca_scores,
    overall_average,
    records_in_window,
    student_average,
    work_summary,
)
from core.records import window_bounds


def tagged(subject, kind, score, date="2025-10-06"):
    return {"subject_id": subject, "assessment_kind": kind, "score": score, "recorded_at": date}


class TestCaAggregation:
    def test_reentered_score_max_wins(self):
        records = [tagged("maths", "ca1", 12), tagged("maths", "ca1", 16)]
        rows = aggregate_ca(records, "ca1")
        assert len(rows) == 1
        assert rows[0]["score"] == 16

    def test_result_independent_of_record_order(self):
        records = [tagged("maths", "ca1", 16), tagged("maths", "ca1", 12)]
        assert collapse_ca_scores(records, "ca1") == {"maths": 16}

    def test_grade_out_of_twenty(self):
        rows = aggregate_ca([tagged("maths", "ca1", 14)], "ca1")
        assert rows[0]["grade"] == "A"
        assert rows[0]["max_score"] == 20.0

    def test_subject_without_matching_kind_is_absent(self):
        records = [tagged("maths", "ca1", 14), tagged("english", "ca2", 11)]
        rows = aggregate_ca(records, "ca1")
        assert [r["subject_id"] for r in rows] == ["maths"]

    def test_mixed_record_shapes(self):
        records = [
            tagged("maths", "ca1", 9),
            {"subject_id": "maths", "ca1": 13, "ca2": 11, "exam": 40},
        ]
        assert collapse_ca_scores(records, "ca1") == {"maths": 13}

    def test_subject_names_resolved(self):
        rows = aggregate_ca([tagged("maths", "ca1", 14)], "ca1", subject_name=lambda s: s.upper())
        assert rows[0]["subject_name"] == "MATHS"

    def test_unsupported_kind_raises(self):
        with pytest.raises(ValueError):
            aggregate_ca([], "exam")

    def test_no_records_means_no_subjects(self):
        assert aggregate_ca([], "ca1") == []


class TestTermAggregation:
    def test_total_is_sum_of_components(self):
        records = [
            tagged("maths", "ca1", 15),
            tagged("maths", "ca2", 12),
            tagged("maths", "exam", 45),
        ]
        row = aggregate_term(records)[0]
        assert (row["ca1"], row["ca2"], row["exam"]) == (15, 12, 45)
        assert row["total"] == 72
        assert row["grade"] == "A"

    def test_each_component_maximized_independently(self):
        records = [
            {"subject_id": "maths", "ca1": 10, "ca2": 18, "exam": 30},
            {"subject_id": "maths", "ca1": 14, "ca2": 9, "exam": 50},
        ]
        row = aggregate_term(records)[0]
        assert (row["ca1"], row["ca2"], row["exam"]) == (14, 18, 50)
        assert row["total"] == 82

    def test_missing_components_count_as_zero(self):
        row = aggregate_term([tagged("english", "exam", 41)])[0]
        assert row["ca1"] == 0 and row["ca2"] == 0
        assert row["total"] == 41
        assert row["grade"] == "E"

    def test_classwork_only_subject_is_absent(self):
        rows = aggregate_term([tagged("maths", "classwork", 8), tagged("english", "exam", 50)])
        assert [r["subject_id"] for r in rows] == ["english"]


class TestWeeklyAggregation:
    START, END = window_bounds("2025-10-06", "2025-10-12")

    def test_window_is_inclusive_of_whole_end_day(self):
        records = [
            tagged("maths", "classwork", 8, "2025-10-06T00:00:00"),
            tagged("maths", "classwork", 6, "2025-10-12T18:00:00"),
            tagged("maths", "classwork", 3, "2025-10-13T00:00:00"),
            tagged("maths", "classwork", 2, "2025-10-05T23:59:59"),
        ]
        rows = aggregate_weekly(records, self.START, self.END)
        assert rows[0]["classwork_scores"] == [8, 6]
        assert rows[0]["classwork_average"] == 7.0

    def test_classwork_and_homework_split(self):
        records = [
            tagged("maths", "classwork", 8),
            tagged("maths", "homework", 5),
            tagged("english", "homework", 9),
            tagged("english", "ca1", 15),
        ]
        rows = {r["subject_id"]: r for r in aggregate_weekly(records, self.START, self.END)}
        assert rows["maths"]["classwork_count"] == 1
        assert rows["maths"]["homework_scores"] == [5]
        assert rows["english"]["classwork_count"] == 0
        assert rows["english"]["classwork_average"] == 0.0
        assert rows["english"]["homework_average"] == 9.0

    def test_records_without_date_are_excluded(self):
        records = [{"subject_id": "maths", "assessment_kind": "classwork", "score": 8}]
        assert records_in_window(records, self.START, self.END) == []

    def test_work_summary_averages_subjects_with_work(self):
        records = [
            tagged("maths", "classwork", 8),
            tagged("maths", "classwork", 6),
            tagged("english", "homework", 9),
        ]
        rows = aggregate_weekly(records, self.START, self.END)
        classwork = work_summary(rows, "classwork")
        assert classwork == {"average": 7.0, "count": 2}
        assert work_summary(rows, "homework") == {"average": 9.0, "count": 1}

    def test_empty_week(self):
        assert aggregate_weekly([], self.START, self.END) == []
        assert work_summary([], "classwork") == {"average": 0.0, "count": 0}


class TestAverages:
    def test_overall_average_of_no_subjects_is_zero(self):
        assert overall_average([], "score") == 0.0

    def test_student_average_per_mode(self):
        records = [
            tagged("maths", "ca1", 12),
            tagged("maths", "ca1", 16),
            tagged("english", "ca1", 18),
            tagged("maths", "exam", 40),
        ]
        assert student_average(records, "ca1") == 17.0
        assert student_average(records, "ca2") == 0.0
        # maths 16 + 40, english 18
        assert student_average(records, "term") == 37.0

    def test_student_average_unknown_mode(self):
        with pytest.raises(ValueError):
            student_average([], "weekly")

    def test_overall_average_matches_manual_mean(self):
        rows = [{"score": 16}, {"score": 18}, {"score": 14}]
        assert overall_average(rows, "score") == pytest.approx(16.0)


def test_window_accepts_datetimes():
    start, end = datetime(2025, 10, 6), datetime(2025, 10, 6, 23, 59)
    records = [tagged("maths", "classwork", 8, "2025-10-06T12:00:00")]
    assert len(records_in_window(records, start, end)) == 1
