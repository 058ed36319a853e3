"""
Tests for core/report_builder.py — CA, end-of-term and weekly report cards
built from the bundled sample data.
"""

import os
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.config import ReportConfig, ReportPeriod
from core.errors import MalformedDateError, NoDataError, NotFoundError
from core.parser import SAMPLE_DATA_DIR, load_school_data
from core.ranking import compute_class_aggregate
from core.records import epoch_millis
from core.report_builder import (
    NO_RESULTS_MESSAGE,
    generate_ca_report,
    generate_term_report,
    generate_weekly_report,
    report_id,
    week_number,
)
from core.sources import FrameDataSource, ReportStore

PERIOD = ReportPeriod(term="First Term", session="2025/2026")
NOW = datetime(2026, 1, 10, 9, 0)


@pytest.fixture
def source():
    return FrameDataSource(**load_school_data(str(SAMPLE_DATA_DIR)))


class TestCaReport:
    """Tests for CA1/CA2 report cards."""

    def test_scores_and_grade(self, source):
        report = generate_ca_report(source, "S001", PERIOD, "ca1", now=NOW)
        scores = {s["subject_id"]: s["score"] for s in report["subjects"]}
        assert scores == {"mathematics": 16, "english": 18, "basic_science": 14}
        assert report["total_score"] == 48
        assert report["average_score"] == 16.0
        assert report["grade"] == "A"
        assert report["remark"] == "Excellent"

    def test_subject_display_names(self, source):
        report = generate_ca_report(source, "S001", PERIOD, "ca1", now=NOW)
        names = [s["subject_name"] for s in report["subjects"]]
        assert names == ["Mathematics", "English Language", "Basic Science"]

    def test_other_periods_ignored(self, source):
        report = generate_ca_report(source, "S001", PERIOD, "ca1", now=NOW)
        maths = [s for s in report["subjects"] if s["subject_id"] == "mathematics"][0]
        assert maths["score"] == 16

    def test_positions_with_tie(self, source):
        positions = {
            sid: generate_ca_report(source, sid, PERIOD, "ca1", now=NOW)["position"]
            for sid in ("S001", "S002", "S003")
        }
        assert positions == {"S001": 1, "S002": 2, "S003": 3}

    def test_total_students_counts_students_without_records(self, source):
        report = generate_ca_report(source, "S003", PERIOD, "ca2", now=NOW)
        assert report["total_students"] == 4
        assert report["position"] == 3
        assert report["grade"] == "C"

    def test_legacy_records(self, source):
        report = generate_ca_report(source, "S002", PERIOD, "ca2", now=NOW)
        assert report["average_score"] == 14.0
        assert report["position"] == 2

    def test_attendance_and_merits(self, source):
        report = generate_ca_report(source, "S001", PERIOD, "ca1", now=NOW)
        assert report["attendance_percentage"] == 66.67
        assert report["total_merits"] == 16

    def test_metadata(self, source):
        report = generate_ca_report(source, "S001", PERIOD, "ca1", generated_by="T01", now=NOW)
        assert report["id"] == "ca1_S001_First Term_2025_2026"
        assert report["report_kind"] == "ca1"
        assert report["student_name"] == "Ada Obi"
        assert report["class_name"] == "JSS 1A"
        assert report["generated_by"] == "T01"
        assert report["generated_at"] == "2026-01-10T09:00:00Z"
        assert report["sent_to_parent"] is False

    def test_regeneration_is_identical(self, source):
        first = generate_ca_report(source, "S001", PERIOD, "ca1", now=NOW)
        second = generate_ca_report(source, "S001", PERIOD, "ca1", now=NOW)
        assert first == second

    def test_saved_to_store(self, source):
        store = ReportStore()
        report = generate_ca_report(source, "S001", PERIOD, "ca1", store=store, now=NOW)
        assert store.get(report["id"]) == report

    def test_shared_class_aggregate(self, source):
        roster = source.get_students_by_class("jss1a")
        aggregate = compute_class_aggregate(source, roster, PERIOD, "ca1")
        report = generate_ca_report(source, "S002", PERIOD, "ca1", class_aggregate=aggregate, now=NOW)
        assert (report["position"], report["total_students"]) == (2, 4)

    def test_unknown_student(self, source):
        with pytest.raises(NotFoundError, match="Student not found"):
            generate_ca_report(source, "NOPE", PERIOD, "ca1")

    def test_student_without_results(self, source):
        with pytest.raises(NoDataError, match=NO_RESULTS_MESSAGE):
            generate_ca_report(source, "S004", PERIOD, "ca1")

    def test_unsupported_kind(self, source):
        with pytest.raises(ValueError):
            generate_ca_report(source, "S001", PERIOD, "exam")

    def test_ca_max_score_from_config(self, source):
        config = ReportConfig(ca_max_score=40.0)
        report = generate_ca_report(source, "S001", PERIOD, "ca1", config=config, now=NOW)
        # 16 out of 40 is exactly 40%
        assert report["grade"] == "E"


class TestTermReport:
    """Tests for the end-of-term report card."""

    def test_totals(self, source):
        report = generate_term_report(source, "S001", PERIOD, now=NOW)
        totals = {s["subject_id"]: s["total"] for s in report["subjects"]}
        assert totals == {"mathematics": 88, "english": 83, "basic_science": 72}
        assert report["total_score"] == 243
        assert report["average_score"] == 81.0
        assert report["overall_grade"] == "A"
        assert report["promoted"] is True

    def test_legacy_student(self, source):
        report = generate_term_report(source, "S002", PERIOD, now=NOW)
        assert report["average_score"] == 76.33
        assert report["position"] == 2
        assert report["total_students"] == 4

    def test_positions(self, source):
        report = generate_term_report(source, "S003", PERIOD, now=NOW)
        assert report["average_score"] == 55.0
        assert report["overall_grade"] == "C"
        assert report["position"] == 3

    def test_attendance_breakdown(self, source):
        report = generate_term_report(source, "S001", PERIOD, now=NOW)
        assert report["present_days"] == 4
        assert report["absent_days"] == 1
        assert report["late_days"] == 1
        assert report["excused_days"] == 0
        assert report["total_school_days"] == 6
        assert report["attendance_percentage"] == 66.67

    def test_merit_level(self, source):
        report = generate_term_report(source, "S001", PERIOD, now=NOW)
        assert report["total_merits"] == 16
        assert report["merit_level"] == "Bronze"

    def test_promotion_mark_from_config(self, source):
        report = generate_term_report(source, "S003", PERIOD, config=ReportConfig(promotion_mark=60.0), now=NOW)
        assert report["promoted"] is False

    def test_comments_and_next_term(self, source):
        report = generate_term_report(
            source, "S001", PERIOD,
            teacher_comment="Keep it up.",
            principal_comment="Promoted.",
            next_term_begins="2026-01-05",
            now=NOW,
        )
        assert report["teacher_comment"] == "Keep it up."
        assert report["principal_comment"] == "Promoted."
        assert report["next_term_begins"] == "2026-01-05T00:00:00Z"
        assert report["id"] == report_id("term", "S001", "First Term", "2025/2026")

    def test_student_without_results(self, source):
        with pytest.raises(NoDataError):
            generate_term_report(source, "S004", PERIOD)

    def test_no_results_for_other_session(self, source):
        with pytest.raises(NoDataError):
            generate_term_report(source, "S002", ReportPeriod("Third Term", "2025/2026"))


class TestWeeklyReport:
    """Tests for the weekly progress report."""

    def build(self, source, student_id="S001", start="2025-10-06", end="2025-10-12", **kwargs):
        return generate_weekly_report(source, student_id, start, end, PERIOD, now=NOW, **kwargs)

    def test_attendance_in_week(self, source):
        attendance = self.build(source)["attendance"]
        assert attendance["total_days"] == 5
        assert attendance["present"] == 4
        assert attendance["late"] == 1
        assert attendance["percentage"] == 80.0
        assert len(attendance["daily_records"]) == 5
        assert attendance["daily_records"][0]["date"] == "2025-10-06T00:00:00Z"

    def test_academics(self, source):
        report = self.build(source)
        rows = {a["subject_id"]: a for a in report["academics"]}
        assert rows["mathematics"]["classwork_scores"] == [8, 6]
        assert rows["mathematics"]["classwork_average"] == 7.0
        assert rows["english"]["homework_scores"] == [9]
        assert rows["english"]["classwork_count"] == 0
        assert report["overall_classwork_average"] == 7.0
        assert report["total_classwork_count"] == 2
        assert report["overall_homework_average"] == 9.0
        assert report["total_homework_count"] == 1

    def test_behavior_includes_end_day(self, source):
        behavior = self.build(source)["behavior"]
        assert behavior["total_merits"] == 8
        assert behavior["total_demerits"] == 2
        assert behavior["net_points"] == 6
        assert [m["points"] for m in behavior["merit_records"]] == [5, -2, 3]

    def test_strengths_and_improvements(self, source):
        report = self.build(source)
        assert report["strengths"] == [
            "Strong academic performance in classwork",
            "Excellent homework completion and performance",
            "Positive behavior and good conduct",
        ]
        assert report["areas_for_improvement"] == ["Submit homework more regularly"]

    def test_week_metadata(self, source):
        report = self.build(source, teacher_observation="Settling in well.")
        assert report["week_start"] == "2025-10-06T00:00:00Z"
        assert report["week_end"].startswith("2025-10-12T23:59:59")
        assert report["week_number"] == 6
        assert report["total_subjects"] == 3
        assert report["trade_subject"] is None
        assert report["teacher_observation"] == "Settling in well."
        assert report["id"].startswith("weekly_S001_")

    def test_weekly_id_names_the_window_it_covers(self, source):
        report = self.build(source)
        start_ms = epoch_millis(datetime(2025, 10, 6))
        end_ms = epoch_millis(datetime(2025, 10, 13)) - 1
        assert report["id"] == f"weekly_S001_{start_ms}_{end_ms}"

    def test_attendance_only_week(self, source):
        report = self.build(source, student_id="S002")
        assert report["academics"] == []
        assert report["attendance"]["percentage"] == 50.0
        assert "Improve attendance consistency" in report["areas_for_improvement"]
        assert "Work on behavior and classroom conduct" in report["areas_for_improvement"]

    def test_empty_week(self, source):
        with pytest.raises(NoDataError):
            self.build(source, student_id="S004")

    def test_malformed_window(self, source):
        with pytest.raises(MalformedDateError):
            self.build(source, start="not a date")

    def test_unknown_student(self, source):
        with pytest.raises(NotFoundError):
            self.build(source, student_id="NOPE")


class TestWeekNumber:
    def test_first_week_of_term(self):
        assert week_number(datetime(2025, 9, 1), "First Term", ReportConfig()) == 1

    def test_term_spanning_new_year(self):
        assert week_number(datetime(2026, 1, 5), "First Term", ReportConfig()) == 19

    def test_unknown_term(self):
        assert week_number(datetime(2025, 9, 1), "Summer School", ReportConfig()) is None
