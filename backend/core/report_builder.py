"""
report_builder.py — Report card assembly.

Generates three report card documents for one student:
- CA report        (one continuous assessment: ca1 or ca2, out of 20 per subject)
- End-of-term card (ca1 + ca2 + exam per subject, out of 100)
- Weekly report    (attendance, classwork/homework and behavior for one week)

Each generator reads through a ReportDataSource, returns a plain
JSON-serializable dict and, when a ReportStore is given, saves it under a
deterministic composite id.  Regenerating overwrites the stored document.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import pandas as pd

from core.aggregator import (
    aggregate_ca,
    aggregate_term,
    aggregate_weekly,
    overall_average,
    records_in_window,
    work_summary,
)
from core.config import ReportConfig, ReportPeriod
from core.errors import NoDataError, NotFoundError
from core.grading import grade, merit_level
from core.insights import weekly_observations
from core.normalizer import CA_KINDS
from core.ranking import class_position, compute_class_aggregate
from core.records import epoch_millis, isoformat, to_datetime, utcnow, window_bounds
from core.sources import safe_subject_name
from core.summaries import (
    daily_attendance,
    merit_entries,
    summarize_attendance,
    summarize_merits,
)

logger = logging.getLogger(__name__)

REPORT_KINDS = ("ca1", "ca2", "term", "weekly")

NO_RESULTS_MESSAGE = "No results found for this student in this term/session"
NO_WEEK_DATA_MESSAGE = "No attendance, merit or assessment records found for this student in this week"


# ── Helpers ─────────────────────────────────────────────────────────

def _round(value: Any) -> float:
    return round(float(value), 2)


def report_id(report_kind: str, student_id: str, term: str, session: str) -> str:
    """Composite id for CA and term reports; safe to use as a storage path."""
    return f"{report_kind}_{student_id}_{term}_{session}".replace("/", "_")


def weekly_report_id(student_id: str, week_start: datetime, week_end: datetime) -> str:
    return f"weekly_{student_id}_{epoch_millis(week_start)}_{epoch_millis(week_end)}".replace("/", "_")


def week_number(week_start: datetime, term: str, config: ReportConfig) -> Optional[int]:
    """1-based week of the term, counted from the first day of the term's start month."""
    month = config.term_start_months.get(term)
    if not month:
        return None
    term_start = datetime(week_start.year, month, 1)
    if term_start > week_start:
        term_start = datetime(week_start.year - 1, month, 1)
    return (week_start - term_start).days // 7 + 1


def _require_student(source: Any, student_id: str) -> Dict[str, Any]:
    student = source.get_student_by_id(student_id)
    if not student:
        raise NotFoundError("Student not found")
    return student


def _base_document(
    kind: str,
    doc_id: str,
    student: Dict[str, Any],
    period: ReportPeriod,
    generated_by: str,
    now: Optional[datetime],
) -> Dict[str, Any]:
    return {
        "id": doc_id,
        "report_kind": kind,
        "student_id": str(student["id"]),
        "student_name": student["name"],
        "admission_number": student.get("admission_number"),
        "class_id": student.get("class_id"),
        "class_name": student.get("class_name"),
        "term": period.term,
        "session": period.session,
        "generated_at": isoformat(now or utcnow()),
        "generated_by": generated_by,
        "sent_to_parent": False,
    }


def _position(
    source: Any,
    student: Dict[str, Any],
    period: ReportPeriod,
    mode: str,
    own_average: float,
    class_aggregate: Optional[pd.DataFrame],
):
    if class_aggregate is None:
        roster = source.get_students_by_class(student.get("class_id"))
        class_aggregate = compute_class_aggregate(source, roster, period, mode)
    return class_position(class_aggregate, student["id"], own_average)


def _save(report: Dict[str, Any], store: Any) -> Dict[str, Any]:
    if store is not None:
        store.save(report)
    return report


# ── CA Report ───────────────────────────────────────────────────────

def generate_ca_report(
    source: Any,
    student_id: str,
    period: ReportPeriod,
    assessment_kind: str,
    generated_by: str = "system",
    config: Optional[ReportConfig] = None,
    store: Any = None,
    class_aggregate: Optional[pd.DataFrame] = None,
    teacher_comment: Optional[str] = None,
    principal_comment: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    CA report card for ca1 or ca2.

    Raises NotFoundError for an unknown student and NoDataError when the
    student has no assessment records at all for the term/session.
    """
    config = config or ReportConfig()
    kind = str(assessment_kind).lower()
    if kind not in CA_KINDS:
        raise ValueError(f"Unsupported CA assessment kind: {assessment_kind!r}")

    logger.info("CA report start: student=%s kind=%s term=%s session=%s",
                student_id, kind, period.term, period.session)
    student = _require_student(source, student_id)

    records = source.get_raw_assessment_records(student["id"], period.term, period.session)
    if not records:
        raise NoDataError(NO_RESULTS_MESSAGE)

    subjects = aggregate_ca(
        records, kind,
        subject_name=lambda sid: safe_subject_name(source, sid),
        max_score=config.ca_max_score,
    )
    for row in subjects:
        logger.debug("  %s: %s/%s (%s)", row["subject_name"], row["score"], row["max_score"], row["grade"])

    total_score = sum(row["score"] for row in subjects)
    average_score = overall_average(subjects, "score")
    overall = grade(average_score, config.ca_max_score)

    position, total_students = _position(source, student, period, kind, average_score, class_aggregate)

    attendance = summarize_attendance(source.get_attendance_records(student["id"], period.term, period.session))
    merits = summarize_merits(source.get_merit_records(student["id"], period.term, period.session))

    report = _base_document(kind, report_id(kind, student["id"], period.term, period.session),
                            student, period, generated_by, now)
    report.update({
        "assessment_kind": kind,
        "subjects": subjects,
        "total_score": _round(total_score),
        "average_score": _round(average_score),
        "position": position,
        "total_students": total_students,
        "grade": overall["letter"],
        "remark": overall["remark"],
        "attendance_percentage": _round(attendance["percentage"]),
        "total_merits": merits["net_points"],
        "teacher_comment": teacher_comment,
        "principal_comment": principal_comment,
    })

    logger.info("CA report complete: %s avg=%.1f grade=%s position=%d/%d",
                report["id"], average_score, overall["letter"], position, total_students)
    return _save(report, store)


# ── End-of-Term Report ──────────────────────────────────────────────

def generate_term_report(
    source: Any,
    student_id: str,
    period: ReportPeriod,
    generated_by: str = "system",
    config: Optional[ReportConfig] = None,
    store: Any = None,
    class_aggregate: Optional[pd.DataFrame] = None,
    teacher_comment: Optional[str] = None,
    principal_comment: Optional[str] = None,
    next_term_begins: Any = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    End-of-term report card: ca1 + ca2 + exam per subject.

    Raises NotFoundError for an unknown student and NoDataError when the
    student has no assessment records for the term/session.
    """
    config = config or ReportConfig()
    logger.info("Term report start: student=%s term=%s session=%s",
                student_id, period.term, period.session)
    student = _require_student(source, student_id)

    records = source.get_raw_assessment_records(student["id"], period.term, period.session)
    if not records:
        raise NoDataError(NO_RESULTS_MESSAGE)

    subjects = aggregate_term(
        records,
        subject_name=lambda sid: safe_subject_name(source, sid),
        max_score=config.term_max_score,
    )
    for row in subjects:
        logger.debug("  %s: CA1=%s CA2=%s Exam=%s Total=%s (%s)",
                     row["subject_name"], row["ca1"], row["ca2"], row["exam"], row["total"], row["grade"])

    total_score = sum(row["total"] for row in subjects)
    average_score = overall_average(subjects, "total")
    overall = grade(average_score, config.term_max_score)

    position, total_students = _position(source, student, period, "term", average_score, class_aggregate)

    attendance = summarize_attendance(source.get_attendance_records(student["id"], period.term, period.session))
    merits = summarize_merits(source.get_merit_records(student["id"], period.term, period.session))

    next_term = isoformat(to_datetime(next_term_begins)) if next_term_begins is not None else None

    report = _base_document("term", report_id("term", student["id"], period.term, period.session),
                            student, period, generated_by, now)
    report.update({
        "subjects": subjects,
        "total_score": _round(total_score),
        "average_score": _round(average_score),
        "position": position,
        "total_students": total_students,
        "overall_grade": overall["letter"],
        "remark": overall["remark"],
        "attendance_percentage": _round(attendance["percentage"]),
        "present_days": attendance["present"],
        "absent_days": attendance["absent"],
        "late_days": attendance["late"],
        "excused_days": attendance["excused"],
        "total_school_days": attendance["total_days"],
        "total_merits": merits["net_points"],
        "merit_level": merit_level(merits["net_points"]),
        "teacher_comment": teacher_comment,
        "principal_comment": principal_comment,
        "next_term_begins": next_term,
        "promoted": average_score >= config.promotion_mark,
    })

    logger.info("Term report complete: %s avg=%.1f grade=%s position=%d/%d promoted=%s",
                report["id"], average_score, overall["letter"], position, total_students, report["promoted"])
    return _save(report, store)


# ── Weekly Report ───────────────────────────────────────────────────

def generate_weekly_report(
    source: Any,
    student_id: str,
    week_start: Any,
    week_end: Any,
    period: ReportPeriod,
    generated_by: str = "system",
    config: Optional[ReportConfig] = None,
    store: Any = None,
    teacher_observation: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Weekly progress report over the inclusive [week_start, week_end] window.

    Raises NotFoundError for an unknown student and NoDataError when the
    window holds no attendance, merit or assessment record at all.
    """
    config = config or ReportConfig()
    start, end = window_bounds(week_start, week_end)
    logger.info("Weekly report start: student=%s week=%s..%s", student_id, start.date(), end.date())
    student = _require_student(source, student_id)

    attendance_rows = records_in_window(
        source.get_attendance_records(student["id"], period.term, period.session), start, end, field="date"
    )
    merit_rows = records_in_window(
        source.get_merit_records(student["id"], period.term, period.session), start, end, field="date"
    )
    assessment_rows = records_in_window(
        source.get_raw_assessment_records(student["id"], period.term, period.session), start, end
    )
    if not attendance_rows and not merit_rows and not assessment_rows:
        raise NoDataError(NO_WEEK_DATA_MESSAGE)

    attendance = summarize_attendance(attendance_rows)
    attendance["percentage"] = _round(attendance["percentage"])
    attendance["daily_records"] = daily_attendance(attendance_rows)

    academics = aggregate_weekly(
        assessment_rows, start, end,
        subject_name=lambda sid: safe_subject_name(source, sid),
    )
    for row in academics:
        row["classwork_average"] = _round(row["classwork_average"])
        row["homework_average"] = _round(row["homework_average"])
    classwork = work_summary(academics, "classwork")
    homework = work_summary(academics, "homework")

    behavior = summarize_merits(merit_rows)
    behavior["merit_records"] = merit_entries(merit_rows)

    strengths, areas_for_improvement = weekly_observations(attendance, academics, behavior)

    trade_subject = student.get("trade_subject")
    enrolled = student.get("subjects")
    if isinstance(enrolled, str):
        enrolled = [s for s in enrolled.replace(";", ",").split(",") if s.strip()]

    report = _base_document("weekly", weekly_report_id(student["id"], start, end),
                            student, period, generated_by, now)
    report.update({
        "week_start": isoformat(start),
        "week_end": isoformat(end),
        "week_number": week_number(start, period.term, config),
        "attendance": attendance,
        "academics": academics,
        "overall_classwork_average": _round(classwork["average"]),
        "total_classwork_count": classwork["count"],
        "overall_homework_average": _round(homework["average"]),
        "total_homework_count": homework["count"],
        "behavior": behavior,
        "teacher_observation": teacher_observation,
        "strengths": strengths,
        "areas_for_improvement": areas_for_improvement,
        "academic_track": student.get("academic_track"),
        "trade_subject": safe_subject_name(source, str(trade_subject)) if trade_subject else None,
        "total_subjects": len(enrolled) if isinstance(enrolled, list) else 0,
    })

    logger.info("Weekly report complete: %s attendance=%.1f%% strengths=%d improvements=%d",
                report["id"], attendance["percentage"], len(strengths), len(areas_for_improvement))
    return _save(report, store)
