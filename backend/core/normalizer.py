"""
normalizer.py — Score extraction across the two historical record shapes.

Tagged shape (current):
    {"subject_id": "maths", "assessment_kind": "ca1", "score": 14, ...}

Legacy shape (one record carrying several components):
    {"subject_id": "maths", "ca1": 12, "ca2": 15, "exam": 48, ...}

Both shapes coexist in the same data sets.  All shape handling lives in
this module so it can be removed once the legacy records are migrated.
"""

from typing import Any, Optional

from core.records import is_missing

ASSESSMENT_KINDS = ("classwork", "homework", "ca1", "ca2", "exam")
CA_KINDS = ("ca1", "ca2")
TERM_COMPONENTS = ("ca1", "ca2", "exam")

# Field spellings seen across record sources, preferred name first.
FIELD_ALIASES = {
    "student_id": ("student_id", "studentId", "student"),
    "subject_id": ("subject_id", "subjectId", "subject"),
    "assessment_kind": ("assessment_kind", "assessmentKind", "assessment_type", "assessmentType", "type"),
    "score": ("score", "marks", "mark"),
    "max_score": ("max_score", "maxScore", "out_of"),
    "recorded_at": ("recorded_at", "recordedAt", "date_recorded", "dateRecorded", "date"),
    "recorded_by": ("recorded_by", "recordedBy", "teacher_id", "teacherId"),
}


def _raw(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def get_field(record: Any, field: str, default: Any = None) -> Any:
    """Read a logical field from a record, trying every known spelling."""
    for name in FIELD_ALIASES.get(field, (field,)):
        value = _raw(record, name)
        if not is_missing(value):
            return value
    return default


def _as_number(value: Any) -> Optional[float]:
    if is_missing(value):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def record_kind(record: Any) -> Optional[str]:
    kind = get_field(record, "assessment_kind")
    if kind is None:
        return None
    return str(kind).strip().lower() or None


def subject_of(record: Any) -> Optional[str]:
    subject = get_field(record, "subject_id")
    if subject is None:
        return None
    return str(subject).strip() or None


def resolve_score(record: Any, kind: str) -> Optional[float]:
    """
    Score the record holds for `kind`, or None if it says nothing about it.
    A tagged record with a missing score counts as a zero.
    """
    kind = kind.lower()
    if record_kind(record) == kind:
        score = _as_number(get_field(record, "score"))
        return score if score is not None else 0.0

    return _as_number(_raw(record, kind))


def extract_score(record: Any, kind: str) -> float:
    """Score for `kind`; absence means zero, never an error."""
    score = resolve_score(record, kind)
    return score if score is not None else 0.0

