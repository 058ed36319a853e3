"""
parser.py — CSV and Excel ingestion for record tables.

Supports:
- CSV files
- Excel (.xlsx) — single and multi-sheet
- Fuzzy column name mapping onto the engine's field names
- Loading a directory of tables (students, results, attendance, merits, subjects)
"""

from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

SAMPLE_DATA_DIR = Path(__file__).parent.parent / "sample_data"

TABLES = ("students", "results", "attendance", "merits", "subjects")

# Common column name variations for auto-mapping
COLUMN_ALIASES = {
    "student_id": [
        "student_id", "studentid", "student id", "student",
    ],
    "admission_number": [
        "admission_number", "admissionnumber", "admission number", "admission_no",
        "admission no", "adm_no", "adm no", "reg_no",
    ],
    "first_name": [
        "first_name", "firstname", "first name", "given_name",
    ],
    "last_name": [
        "last_name", "lastname", "last name", "surname", "family_name",
    ],
    "class_id": [
        "class_id", "classid", "class id", "class",
    ],
    "class_name": [
        "class_name", "classname", "class name",
    ],
    "subject_id": [
        "subject_id", "subjectid", "subject id", "subject",
    ],
    "subject_name": [
        "subject_name", "subjectname", "subject name",
    ],
    "assessment_kind": [
        "assessment_kind", "assessmentkind", "assessment kind", "assessment_type",
        "assessmenttype", "assessment type", "type",
    ],
    "score": [
        "score", "marks", "mark",
    ],
    "max_score": [
        "max_score", "maxscore", "max score", "max_marks", "out_of", "out of",
    ],
    "recorded_at": [
        "recorded_at", "recordedat", "recorded at", "date_recorded", "daterecorded",
    ],
    "recorded_by": [
        "recorded_by", "recordedby", "recorded by", "teacher_id", "teacherid",
    ],
    "term": [
        "term", "semester",
    ],
    "session": [
        "session", "academic_year", "academic year",
    ],
}

REQUIRED_COLUMNS = {
    "students": ["first_name", "class_id"],
    "results": ["student_id", "subject_id"],
    "attendance": ["student_id", "date", "status"],
    "merits": ["student_id", "date", "points"],
    "subjects": ["subject_id", "subject_name"],
}


def parse_upload(file_path: str) -> Dict[str, pd.DataFrame]:
    """
    Parse an uploaded file and return a dict of {sheet_name: DataFrame}.
    For CSV files, returns {"Sheet1": df}.
    """
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".csv":
        df = pd.read_csv(file_path, dtype=str)
        return {"Sheet1": df}

    elif ext == ".xlsx":
        xls = pd.ExcelFile(file_path, engine="openpyxl")
        sheets = {}
        for sheet_name in xls.sheet_names:
            df = pd.read_excel(xls, sheet_name=sheet_name, dtype=str)
            # Skip empty sheets
            if not df.empty and len(df.columns) > 1:
                sheets[sheet_name] = df
        if not sheets:
            raise ValueError("No valid sheets found in the Excel file.")
        return sheets

    else:
        raise ValueError(f"Unsupported file type: {ext}")


def suggest_column_mapping(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """
    Suggest a mapping from expected field names to actual column names.
    Returns: { expected_field: actual_column_name_or_None }
    """
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    mapping: Dict[str, Optional[str]] = {}

    for field, aliases in COLUMN_ALIASES.items():
        matched = None
        for alias in aliases:
            if alias in cols_lower:
                matched = cols_lower[alias]
                break
        mapping[field] = matched

    return mapping


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rename recognized columns to their canonical field names.
    Columns already carrying a canonical name are never overwritten, and
    unrecognized columns (legacy ca1/ca2/exam, date, status ...) are kept.
    """
    mapping = suggest_column_mapping(df)
    renames = {}
    taken = set(df.columns)
    for field, actual in mapping.items():
        if actual is None or actual == field or field in taken or actual in renames:
            continue
        renames[actual] = field
        taken.add(field)
    if renames:
        df = df.rename(columns=renames)
    return df


def load_school_data(directory: str) -> Dict[str, pd.DataFrame]:
    """
    Load every known table found in a directory.
    Each table may be a .csv or .xlsx file named after it (results.csv ...).
    Missing tables come back as empty DataFrames.
    """
    base = Path(directory)
    if not base.is_dir():
        raise ValueError(f"Not a directory: {directory}")

    tables: Dict[str, pd.DataFrame] = {}
    for table in TABLES:
        found = None
        for ext in (".csv", ".xlsx"):
            candidate = base / f"{table}{ext}"
            if candidate.exists():
                found = candidate
                break
        if found is None:
            tables[table] = pd.DataFrame()
            continue
        sheets = parse_upload(str(found))
        tables[table] = normalize_columns(list(sheets.values())[0])
    return tables


def validate_records(df: pd.DataFrame, table: str) -> List[Dict]:
    """
    Validate one record table and return a list of issues found.
    """
    issues = []
    df = normalize_columns(df)

    for field in REQUIRED_COLUMNS.get(table, []):
        if field not in df.columns:
            issues.append({
                "type": "missing_column",
                "severity": "critical",
                "message": f"Required column '{field}' not found in {table}. "
                           f"Expected one of: {COLUMN_ALIASES.get(field, [field])}",
            })

    if len(df) == 0:
        issues.append({
            "type": "empty_data",
            "severity": "critical",
            "message": f"The {table} table contains no data rows.",
        })
        return issues

    if table == "results":
        score_cols = [c for c in ("score", "ca1", "ca2", "exam") if c in df.columns]
        for col in score_cols:
            scores = pd.to_numeric(df[col], errors="coerce")
            invalid_count = int(scores.isna().sum() - df[col].isna().sum())
            if invalid_count > 0:
                issues.append({
                    "type": "invalid_scores",
                    "severity": "warning",
                    "message": f"{invalid_count} values in '{col}' could not be parsed as numbers.",
                })
            if (scores.dropna() < 0).any():
                issues.append({
                    "type": "negative_scores",
                    "severity": "warning",
                    "message": f"Some '{col}' values are negative — likely data entry errors.",
                })

        # Re-entries are legal; the highest score wins.
        group_cols = [c for c in ("student_id", "subject_id", "assessment_kind", "term", "session") if c in df.columns]
        if "assessment_kind" in group_cols:
            dupe_count = int(df.duplicated(subset=group_cols, keep=False).sum())
            if dupe_count > 0:
                issues.append({
                    "type": "duplicates",
                    "severity": "info",
                    "message": f"{dupe_count} re-entered scores detected; the highest score per assessment is used.",
                })

    if table == "attendance" and "status" in df.columns:
        statuses = df["status"].dropna().astype(str).str.strip().str.lower()
        unknown = statuses[~statuses.isin(["present", "absent", "late", "excused"])]
        if len(unknown) > 0:
            issues.append({
                "type": "unknown_status",
                "severity": "warning",
                "message": f"{len(unknown)} attendance records have an unknown status.",
            })

    return issues
