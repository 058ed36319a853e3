"""
sources.py — Record sources and report persistence.

ReportDataSource is the read-only interface the report engine depends on.
FrameDataSource implements it over pandas DataFrames (loaded from
uploaded files or JSON payloads).  ReportStore is the persistence adapter
for generated report documents: keyed by composite id, last writer wins.
"""

import copy
import logging
import re
import threading
from typing import Any, Dict, List, Optional, Protocol

import pandas as pd

from core.errors import SubjectLookupError
from core.parser import normalize_columns
from core.records import is_missing

logger = logging.getLogger(__name__)


class ReportDataSource(Protocol):
    def get_student_by_id(self, student_id: str) -> Optional[Dict[str, Any]]: ...

    def get_students_by_class(self, class_id: str) -> List[Dict[str, Any]]: ...

    def get_raw_assessment_records(self, student_id: str, term: str, session: str) -> List[Dict[str, Any]]: ...

    def get_attendance_records(self, student_id: str, term: str, session: str) -> List[Dict[str, Any]]: ...

    def get_merit_records(self, student_id: str, term: str, session: str) -> List[Dict[str, Any]]: ...

    def get_subject_name(self, subject_id: str) -> str: ...


# ── Helpers ─────────────────────────────────────────────────────────

def humanize_id(value: str) -> str:
    """basic_science -> Basic Science"""
    text = re.sub(r"[_\-]+", " ", str(value)).strip()
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), text)


def safe_subject_name(source: Any, subject_id: str) -> str:
    """Subject display name; any lookup failure falls back to the humanized id."""
    try:
        name = source.get_subject_name(subject_id)
    except Exception as exc:
        logger.warning("Subject lookup failed for %s: %s", subject_id, exc)
        return humanize_id(subject_id)
    if not name or is_missing(name):
        return humanize_id(subject_id)
    return str(name)


def student_name(student: Dict[str, Any]) -> str:
    first = student.get("first_name")
    last = student.get("last_name")
    parts = [str(p).strip() for p in (first, last) if not is_missing(p) and str(p).strip()]
    if parts:
        return " ".join(parts)
    name = student.get("name")
    if not is_missing(name) and str(name).strip():
        return str(name).strip()
    return str(student.get("id", "Unknown Student"))


def _clean(value: Any) -> Any:
    return None if is_missing(value) else value


def _clean_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _clean(v) for k, v in row.items()}


def _frame(data: Any) -> pd.DataFrame:
    if data is None:
        return pd.DataFrame()
    df = data.copy() if isinstance(data, pd.DataFrame) else pd.DataFrame(list(data))
    return normalize_columns(df)


# ── DataFrame-backed source ─────────────────────────────────────────

class FrameDataSource:
    """
    In-memory record source over five tables:
    students, results, attendance, merits, subjects.

    Record tables are filtered by term/session when they carry those
    columns; tables without them are treated as already scoped.
    """

    def __init__(
        self,
        students: Any = None,
        results: Any = None,
        attendance: Any = None,
        merits: Any = None,
        subjects: Any = None,
    ):
        self.students = _frame(students)
        self.results = _frame(results)
        self.attendance = _frame(attendance)
        self.merits = _frame(merits)
        self.subjects = _frame(subjects)

        for df in (self.students, self.results, self.attendance, self.merits, self.subjects):
            for col in ("id", "student_id", "class_id", "subject_id", "admission_number"):
                if col in df.columns:
                    df[col] = df[col].map(lambda v: None if is_missing(v) else str(v).strip())

        self._subject_names: Dict[str, str] = {}
        if {"subject_id", "subject_name"} <= set(self.subjects.columns):
            for _, row in self.subjects.iterrows():
                if row["subject_id"] and not is_missing(row["subject_name"]):
                    self._subject_names[row["subject_id"]] = str(row["subject_name"])

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "FrameDataSource":
        """Build from a JSON payload {"students": [...], "results": [...], ...}."""
        return cls(
            students=data.get("students"),
            results=data.get("results"),
            attendance=data.get("attendance"),
            merits=data.get("merits"),
            subjects=data.get("subjects"),
        )

    def _student_row(self, row: Dict[str, Any]) -> Dict[str, Any]:
        student = _clean_row(row)
        student["id"] = student.get("id") or student.get("student_id")
        student["name"] = student_name(student)
        return student

    def get_student_by_id(self, student_id: str) -> Optional[Dict[str, Any]]:
        if self.students.empty:
            return None
        key = str(student_id).strip()
        for col in ("id", "student_id", "admission_number"):
            if col not in self.students.columns:
                continue
            match = self.students[self.students[col] == key]
            if not match.empty:
                return self._student_row(match.iloc[0].to_dict())
        return None

    def get_students_by_class(self, class_id: str) -> List[Dict[str, Any]]:
        if self.students.empty or "class_id" not in self.students.columns:
            return []
        roster = self.students[self.students["class_id"] == str(class_id).strip()]
        return [self._student_row(row) for row in roster.to_dict(orient="records")]

    def _scoped(self, df: pd.DataFrame, student_id: str, term: str, session: str) -> List[Dict[str, Any]]:
        if df.empty or "student_id" not in df.columns:
            return []
        student = self.get_student_by_id(student_id)
        key = student["id"] if student else str(student_id).strip()
        mask = df["student_id"] == key
        if "term" in df.columns:
            mask &= df["term"].astype(str).str.strip() == str(term).strip()
        if "session" in df.columns:
            mask &= df["session"].astype(str).str.strip() == str(session).strip()
        return [_clean_row(row) for row in df[mask].to_dict(orient="records")]

    def get_raw_assessment_records(self, student_id: str, term: str, session: str) -> List[Dict[str, Any]]:
        return self._scoped(self.results, student_id, term, session)

    def get_attendance_records(self, student_id: str, term: str, session: str) -> List[Dict[str, Any]]:
        return self._scoped(self.attendance, student_id, term, session)

    def get_merit_records(self, student_id: str, term: str, session: str) -> List[Dict[str, Any]]:
        return self._scoped(self.merits, student_id, term, session)

    def lookup_subject(self, subject_id: str) -> str:
        try:
            return self._subject_names[subject_id]
        except KeyError:
            raise SubjectLookupError(f"Subject not found: {subject_id}") from None

    def get_subject_name(self, subject_id: str) -> str:
        try:
            return self.lookup_subject(subject_id)
        except SubjectLookupError as exc:
            logger.warning("%s; using humanized id", exc)
            return humanize_id(subject_id)


# ── Report persistence ──────────────────────────────────────────────

class ReportStore:
    """
    Report documents keyed by composite id.
    Saving an existing id replaces the whole document.
    """

    def __init__(self):
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def save(self, report: Dict[str, Any]) -> str:
        report_id = report["id"]
        with self._lock:
            self._docs[report_id] = copy.deepcopy(report)
        return report_id

    def get(self, report_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._docs.get(report_id)
        return copy.deepcopy(doc) if doc is not None else None

    def list_ids(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._docs if k.startswith(prefix))

    def __len__(self) -> int:
        with self._lock:
            return len(self._docs)
