"""
summaries.py — Attendance and merit/demerit summaries.

Attendance records are not deduplicated: every record in range counts
as one school day.  Percentage = present / total * 100 (late and excused
are not "present").
"""

from typing import Any, Dict, Iterable, List

from core.records import is_missing, isoformat, to_datetime
from core.normalizer import get_field

ATTENDANCE_STATUSES = ("present", "absent", "late", "excused")


def _status(record: Any) -> str:
    value = get_field(record, "status")
    return str(value).strip().lower() if value is not None else ""


def _points(record: Any) -> int:
    value = get_field(record, "points")
    if is_missing(value):
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def summarize_attendance(records: Iterable[Any]) -> Dict[str, Any]:
    records = list(records)
    counts = {status: 0 for status in ATTENDANCE_STATUSES}
    for record in records:
        status = _status(record)
        if status in counts:
            counts[status] += 1

    total = len(records)
    return {
        "total_days": total,
        "present": counts["present"],
        "absent": counts["absent"],
        "late": counts["late"],
        "excused": counts["excused"],
        "percentage": (counts["present"] / total * 100) if total > 0 else 0.0,
    }


def daily_attendance(records: Iterable[Any]) -> List[Dict[str, Any]]:
    """Per-day entries for a weekly report, oldest first."""
    rows = [
        {"date": to_datetime(get_field(r, "date")), "status": _status(r)}
        for r in records
    ]
    rows.sort(key=lambda r: r["date"])
    return [{"date": isoformat(r["date"]), "status": r["status"]} for r in rows]


def summarize_merits(records: Iterable[Any]) -> Dict[str, int]:
    points = [_points(r) for r in records]
    total_merits = sum(p for p in points if p > 0)
    total_demerits = abs(sum(p for p in points if p < 0))
    return {
        "total_merits": total_merits,
        "total_demerits": total_demerits,
        "net_points": sum(points),
    }


def merit_entries(records: Iterable[Any]) -> List[Dict[str, Any]]:
    """Merit/demerit events for a weekly report, oldest first."""
    rows = []
    for r in records:
        category = get_field(r, "category")
        reason = get_field(r, "reason")
        rows.append({
            "date": to_datetime(get_field(r, "date")),
            "category": str(category) if category is not None else "",
            "points": _points(r),
            "reason": str(reason) if reason is not None else "",
        })
    rows.sort(key=lambda r: r["date"])
    for row in rows:
        row["date"] = isoformat(row["date"])
    return rows
