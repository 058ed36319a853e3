"""
ranking.py — Class-relative positions.

Every classmate's records are re-aggregated under the same mode as the
report being built, then the class is sorted by average (descending).
Ties are broken by student id (ascending) so a position never depends on
the order in which the record store returned the roster.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from core.aggregator import student_average
from core.config import ReportPeriod

logger = logging.getLogger(__name__)

RANK_COLUMNS = ["student_id", "average"]


def compute_class_aggregate(
    source: Any,
    roster: Iterable[Dict[str, Any]],
    period: ReportPeriod,
    mode: str,
) -> pd.DataFrame:
    """
    (student_id, average) for every student on the roster.
    A student with no records averages 0 and still counts toward the total.
    """
    rows = []
    for student in roster:
        sid = str(student["id"])
        records = source.get_raw_assessment_records(sid, period.term, period.session)
        rows.append({"student_id": sid, "average": student_average(records, mode)})
    logger.debug("Class aggregate (%s, %s %s): %d students", mode, period.term, period.session, len(rows))
    return pd.DataFrame(rows, columns=RANK_COLUMNS)


def rank_order(aggregate: pd.DataFrame) -> pd.DataFrame:
    """Aggregate sorted best-first with a 1-based 'position' column."""
    if aggregate.empty:
        return aggregate.assign(position=pd.Series(dtype=int))
    ordered = aggregate.sort_values(
        ["average", "student_id"], ascending=[False, True], kind="mergesort"
    ).reset_index(drop=True)
    ordered["position"] = ordered.index + 1
    return ordered


def class_position(
    aggregate: pd.DataFrame,
    student_id: str,
    student_avg: Optional[float] = None,
) -> Tuple[int, int]:
    """
    (position, total_students) of one student within the class aggregate.

    A student missing from the roster is ranked as an extra entry using
    `student_avg`, so the position is always within [1, total].
    """
    sid = str(student_id)
    if sid not in set(aggregate["student_id"]):
        extra = pd.DataFrame([{"student_id": sid, "average": float(student_avg or 0.0)}])
        aggregate = extra if aggregate.empty else pd.concat([aggregate, extra], ignore_index=True)
        logger.warning("Student %s is not on the class roster; ranking as an extra entry", sid)

    ordered = rank_order(aggregate)
    position = int(ordered.loc[ordered["student_id"] == sid, "position"].iloc[0])
    return position, len(ordered)


def class_rankings(aggregate: pd.DataFrame) -> List[Dict[str, Any]]:
    """Whole-class ranking as plain records, best first."""
    ordered = rank_order(aggregate)
    return [
        {"student_id": row["student_id"], "average": round(float(row["average"]), 2), "position": int(row["position"])}
        for row in ordered.to_dict(orient="records")
    ]
