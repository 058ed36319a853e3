"""
Report card routes — generate, bulk-generate and fetch report cards.

Every generation request carries the record tables it works from:
    { "data": { "students": [...], "results": [...], "attendance": [...],
                "merits": [...], "subjects": [...] }, ...parameters }
Term and session default to the configured current period.  When the
server has a DATA_DIR configured, requests may leave "data" out and the
tables are read from that directory instead.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from core.bulk import generate_bulk
from core.config import ReportPeriod, get_config
from core.errors import NoDataError, NotFoundError
from core.grading import get_all_grade_thresholds, get_merit_levels
from core.parser import TABLES, load_school_data, normalize_columns, parse_upload, validate_records
from core.ranking import class_rankings, compute_class_aggregate
from core.records import week_bounds
from core.report_builder import (
    REPORT_KINDS,
    generate_ca_report,
    generate_term_report,
    generate_weekly_report,
)
from core.sources import FrameDataSource, ReportStore

router = APIRouter()

CONFIG = get_config()

# Generated reports, keyed by composite id. Last writer wins.
store = ReportStore()


def _source_from_payload(payload: dict) -> FrameDataSource:
    """Build a record source from the request's data tables."""
    data = payload.get("data")
    if not data and CONFIG.data_dir:
        try:
            return FrameDataSource(**load_school_data(CONFIG.data_dir))
        except ValueError as exc:
            raise HTTPException(500, f"Configured data directory is unusable: {exc}")
    if not data or not isinstance(data, dict):
        raise HTTPException(400, "No data provided.")
    if not data.get("students"):
        raise HTTPException(400, "Provide 'data.students'.")
    return FrameDataSource.from_payload(data)


def _period(payload: dict) -> ReportPeriod:
    default = CONFIG.default_period()
    return ReportPeriod(
        term=str(payload.get("term") or default.term),
        session=str(payload.get("session") or default.session),
    )


def _require(payload: dict, *fields: str):
    missing = [f for f in fields if not payload.get(f)]
    if missing:
        raise HTTPException(400, f"Provide {', '.join(repr(f) for f in missing)}.")


def _run(generate: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """Map engine errors onto HTTP errors."""
    try:
        return generate()
    except (NotFoundError, NoDataError) as exc:
        raise HTTPException(404, str(exc))
    except ValueError as exc:
        raise HTTPException(400, str(exc))


@router.post("/ca")
async def ca_report(payload: dict):
    """Generate a CA1 or CA2 report card for one student."""
    _require(payload, "student_id")
    source = _source_from_payload(payload)
    kind = str(payload.get("assessment_kind") or "ca1").lower()
    return _run(lambda: generate_ca_report(
        source,
        str(payload["student_id"]),
        _period(payload),
        kind,
        generated_by=str(payload.get("generated_by") or "admin"),
        config=CONFIG,
        store=store,
        teacher_comment=payload.get("teacher_comment"),
        principal_comment=payload.get("principal_comment"),
    ))


@router.post("/term")
async def term_report(payload: dict):
    """Generate an end-of-term report card for one student."""
    _require(payload, "student_id")
    source = _source_from_payload(payload)
    return _run(lambda: generate_term_report(
        source,
        str(payload["student_id"]),
        _period(payload),
        generated_by=str(payload.get("generated_by") or "admin"),
        config=CONFIG,
        store=store,
        teacher_comment=payload.get("teacher_comment"),
        principal_comment=payload.get("principal_comment"),
        next_term_begins=payload.get("next_term_begins"),
    ))


def _week(payload: dict):
    if payload.get("week_start") and payload.get("week_end"):
        return payload["week_start"], payload["week_end"]
    if payload.get("week_of"):
        try:
            return week_bounds(payload["week_of"])
        except ValueError as exc:
            raise HTTPException(400, str(exc))
    raise HTTPException(400, "Provide 'week_start' and 'week_end', or 'week_of'.")


@router.post("/weekly")
async def weekly_report(payload: dict):
    """Generate a weekly progress report for one student."""
    _require(payload, "student_id")
    source = _source_from_payload(payload)
    week_start, week_end = _week(payload)
    return _run(lambda: generate_weekly_report(
        source,
        str(payload["student_id"]),
        week_start,
        week_end,
        _period(payload),
        generated_by=str(payload.get("generated_by") or "admin"),
        config=CONFIG,
        store=store,
        teacher_observation=payload.get("teacher_observation"),
    ))


@router.post("/bulk")
async def bulk_reports(payload: dict):
    """
    Generate one report per student in a class.
    Per-student failures are listed in 'errors'; the request still succeeds.
    """
    _require(payload, "class_id", "report_kind")
    source = _source_from_payload(payload)
    report_kind = str(payload["report_kind"]).lower()
    if report_kind not in REPORT_KINDS:
        raise HTTPException(400, f"Unsupported report kind '{report_kind}'. Use one of {list(REPORT_KINDS)}.")

    week_start = week_end = None
    if report_kind == "weekly":
        week_start, week_end = _week(payload)

    return _run(lambda: generate_bulk(
        source,
        str(payload["class_id"]),
        _period(payload),
        report_kind,
        generated_by=str(payload.get("generated_by") or "admin"),
        config=CONFIG,
        store=store,
        week_start=week_start,
        week_end=week_end,
        next_term_begins=payload.get("next_term_begins"),
    ))


@router.post("/class-ranking")
async def class_ranking(payload: dict):
    """Whole-class positions for ca1, ca2 or term averages."""
    _require(payload, "class_id")
    source = _source_from_payload(payload)
    mode = str(payload.get("mode") or "term").lower()
    if mode not in ("ca1", "ca2", "term"):
        raise HTTPException(400, f"Unsupported ranking mode '{mode}'. Use ca1, ca2 or term.")
    period = _period(payload)
    roster = source.get_students_by_class(str(payload["class_id"]))
    if not roster:
        raise HTTPException(404, f"No students found for class '{payload['class_id']}'.")
    aggregate = compute_class_aggregate(source, roster, period, mode)
    return {
        "class_id": str(payload["class_id"]),
        "term": period.term,
        "session": period.session,
        "mode": mode,
        "rankings": class_rankings(aggregate),
    }


def _df_records(df):
    """DataFrame rows as JSON-safe records (NaN becomes null)."""
    return json.loads(df.to_json(orient="records", date_format="iso"))


@router.post("/upload")
async def upload_records(file: UploadFile = File(...), table: str = Form(...)):
    """
    Check one uploaded record table (CSV or Excel) before it is sent for
    report generation. Returns the rows under canonical column names and
    the validation issues found.
    """
    table = table.strip().lower()
    if table not in TABLES:
        raise HTTPException(400, f"Unknown table '{table}'. Use one of {list(TABLES)}.")
    ext = Path(file.filename or "").suffix.lower()
    if ext not in (".csv", ".xlsx"):
        raise HTTPException(400, f"Unsupported file type: {ext}. Use CSV or Excel.")

    fd, save_path = tempfile.mkstemp(suffix=ext)
    try:
        with os.fdopen(fd, "wb") as f:
            while True:
                chunk = await file.read(1024 * 1024)
                if not chunk:
                    break
                f.write(chunk)
        sheets = parse_upload(save_path)
        df = normalize_columns(list(sheets.values())[0])
    except Exception as e:
        raise HTTPException(400, f"Failed to process upload '{file.filename}': {str(e)}")
    finally:
        Path(save_path).unlink(missing_ok=True)

    return {
        "table": table,
        "filename": file.filename,
        "rows": len(df),
        "columns": list(df.columns),
        "records": _df_records(df),
        "issues": validate_records(df, table),
    }


@router.get("/grade-scale")
async def grade_scale():
    """Grade bands and merit levels used on every report card."""
    return {
        "grades": get_all_grade_thresholds(),
        "merit_levels": get_merit_levels(),
        "ca_max_score": CONFIG.ca_max_score,
        "promotion_mark": CONFIG.promotion_mark,
    }


@router.get("/")
async def list_reports(prefix: str = ""):
    """Ids of stored reports, optionally filtered by prefix (e.g. 'ca1_')."""
    return {"report_ids": store.list_ids(prefix)}


@router.get("/{report_id}")
async def get_report(report_id: str):
    report = store.get(report_id)
    if report is None:
        raise HTTPException(404, f"Report '{report_id}' not found.")
    return report
