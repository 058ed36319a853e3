"""
aggregator.py — Per-subject aggregation of raw assessment records.

Three modes:
- CA     : one assessment kind (ca1/ca2); duplicates collapse to the max.
- Term   : running max of ca1, ca2 and exam independently; total = sum.
- Weekly : classwork/homework score lists inside a date window, with means.

Subjects come from what was recorded, not from the enrolled catalog:
a subject with no matching record is simply absent.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

import numpy as np

from core.grading import grade
from core.normalizer import (
    CA_KINDS,
    TERM_COMPONENTS,
    get_field,
    record_kind,
    resolve_score,
    subject_of,
)
from core.records import in_window, to_datetime

CA_MAX_SCORE = 20.0
TERM_MAX_SCORE = 100.0

SubjectNamer = Callable[[str], str]


def _mean(values: List[float]) -> float:
    return float(np.mean(values)) if values else 0.0


def _identity_name(subject_id: str) -> str:
    return subject_id


# ── CA mode ─────────────────────────────────────────────────────────

def collapse_ca_scores(records: Iterable[Any], kind: str) -> Dict[str, float]:
    """{subject_id: max score for `kind`} in first-seen subject order."""
    if kind not in CA_KINDS:
        raise ValueError(f"Unsupported CA assessment kind: {kind!r}")

    scores: Dict[str, float] = {}
    for record in records:
        subject_id = subject_of(record)
        if subject_id is None:
            continue
        score = resolve_score(record, kind)
        if score is None:
            continue
        if subject_id in scores:
            scores[subject_id] = max(scores[subject_id], score)
        else:
            scores[subject_id] = score
    return scores


def aggregate_ca(
    records: Iterable[Any],
    kind: str,
    subject_name: Optional[SubjectNamer] = None,
    max_score: float = CA_MAX_SCORE,
) -> List[Dict[str, Any]]:
    """One row per subject with the effective CA score and its grade."""
    subject_name = subject_name or _identity_name
    rows = []
    for subject_id, score in collapse_ca_scores(records, kind).items():
        info = grade(score, max_score)
        rows.append({
            "subject_id": subject_id,
            "subject_name": subject_name(subject_id),
            "score": score,
            "max_score": max_score,
            "grade": info["letter"],
            "remark": info["remark"],
        })
    return rows


# ── Term mode ───────────────────────────────────────────────────────

def collapse_term_scores(records: Iterable[Any]) -> Dict[str, Dict[str, float]]:
    """
    {subject_id: {"ca1", "ca2", "exam"}} with each component maximized on
    its own.  Components never recorded stay at 0.
    """
    subjects: Dict[str, Dict[str, float]] = {}
    for record in records:
        subject_id = subject_of(record)
        if subject_id is None:
            continue
        found = {c: resolve_score(record, c) for c in TERM_COMPONENTS}
        if all(v is None for v in found.values()):
            continue
        entry = subjects.setdefault(subject_id, {c: 0.0 for c in TERM_COMPONENTS})
        for component, value in found.items():
            if value is not None:
                entry[component] = max(entry[component], value)
    return subjects


def aggregate_term(
    records: Iterable[Any],
    subject_name: Optional[SubjectNamer] = None,
    max_score: float = TERM_MAX_SCORE,
) -> List[Dict[str, Any]]:
    """One row per subject: ca1, ca2, exam, total and grade on the total."""
    subject_name = subject_name or _identity_name
    rows = []
    for subject_id, parts in collapse_term_scores(records).items():
        total = parts["ca1"] + parts["ca2"] + parts["exam"]
        info = grade(total, max_score)
        rows.append({
            "subject_id": subject_id,
            "subject_name": subject_name(subject_id),
            "ca1": parts["ca1"],
            "ca2": parts["ca2"],
            "exam": parts["exam"],
            "total": total,
            "grade": info["letter"],
            "remark": info["remark"],
        })
    return rows


# ── Weekly mode ─────────────────────────────────────────────────────

def records_in_window(records: Iterable[Any], start, end, field: str = "recorded_at") -> List[Any]:
    """Records whose date falls inside the inclusive [start, end] window."""
    kept = []
    for record in records:
        raw = get_field(record, field)
        if raw is None:
            continue
        if in_window(to_datetime(raw), start, end):
            kept.append(record)
    return kept


def aggregate_weekly(
    records: Iterable[Any],
    start,
    end,
    subject_name: Optional[SubjectNamer] = None,
) -> List[Dict[str, Any]]:
    """
    Classwork and homework per subject for one week.
    Scores keep their recorded order; nothing is collapsed.
    """
    subject_name = subject_name or _identity_name
    classwork: Dict[str, List[float]] = {}
    homework: Dict[str, List[float]] = {}
    order: List[str] = []

    for record in records_in_window(records, start, end):
        kind = record_kind(record)
        if kind not in ("classwork", "homework"):
            continue
        subject_id = subject_of(record)
        if subject_id is None:
            continue
        if subject_id not in order:
            order.append(subject_id)
        target = classwork if kind == "classwork" else homework
        target.setdefault(subject_id, []).append(resolve_score(record, kind) or 0.0)

    rows = []
    for subject_id in order:
        cw = classwork.get(subject_id, [])
        hw = homework.get(subject_id, [])
        rows.append({
            "subject_id": subject_id,
            "subject_name": subject_name(subject_id),
            "classwork_scores": cw,
            "classwork_average": _mean(cw),
            "classwork_count": len(cw),
            "homework_scores": hw,
            "homework_average": _mean(hw),
            "homework_count": len(hw),
        })
    return rows


# ── Summaries ───────────────────────────────────────────────────────

def overall_average(rows: List[Dict[str, Any]], field: str) -> float:
    """Mean of one per-subject field; 0 when there are no subjects."""
    return _mean([float(r[field]) for r in rows])


def student_average(records: Iterable[Any], mode: str) -> float:
    """
    The figure a student is ranked on: mean of per-subject effective
    scores under the given mode ("ca1", "ca2" or "term").
    """
    if mode in CA_KINDS:
        return _mean(list(collapse_ca_scores(records, mode).values()))
    if mode == "term":
        return _mean([sum(parts.values()) for parts in collapse_term_scores(records).values()])
    raise ValueError(f"Unsupported ranking mode: {mode!r}")


def work_summary(academics: List[Dict[str, Any]], kind: str) -> Dict[str, Any]:
    """
    Week-level classwork or homework figures: the mean of per-subject
    averages over subjects that have work of that kind, and the count.
    """
    rows = [a for a in academics if a[f"{kind}_count"] > 0]
    return {
        "average": _mean([float(a[f"{kind}_average"]) for a in rows]),
        "count": int(sum(a[f"{kind}_count"] for a in academics)),
    }
