"""
grading.py — Letter grades, remarks and merit levels.

Grade bands are percentages of the maximum score with inclusive lower
edges:
  A ≥70, B ≥60, C ≥50, D ≥45, E ≥40, F below 40

Merit levels are an independent scale on net merit points.
"""

from typing import Any, Dict, List, Optional


# Grade bands (min_percentage, letter, remark), ordered high to low.
GRADE_BANDS = [
    (70.0, "A", "Excellent"),
    (60.0, "B", "Very Good"),
    (50.0, "C", "Good"),
    (45.0, "D", "Pass"),
    (40.0, "E", "Weak Pass"),
    (0.0, "F", "Fail"),
]

GRADE_REMARKS = {letter: remark for _, letter, remark in GRADE_BANDS}

# Merit levels (min_points, level), ordered high to low.
MERIT_LEVELS = [
    (501, "Diamond"),
    (301, "Platinum"),
    (151, "Gold"),
    (51, "Silver"),
]
BASE_MERIT_LEVEL = "Bronze"


def _percentage(score: Optional[float], max_score: Optional[float]) -> Optional[float]:
    try:
        value = float(score)
        maximum = float(max_score)
    except (TypeError, ValueError):
        return None
    if maximum <= 0:
        return None
    # Rounded so float noise cannot push an exact boundary into the band below.
    return round(value / maximum * 100, 9)


def grade(score: Optional[float], max_score: Optional[float] = 100) -> Dict[str, Any]:
    """
    Classify a score out of max_score.
    Returns {"letter", "remark", "percentage"}; unusable input grades as F.
    """
    pct = _percentage(score, max_score)
    if pct is None:
        return {"letter": "F", "remark": GRADE_REMARKS["F"], "percentage": 0.0}

    for min_pct, letter, remark in GRADE_BANDS:
        if pct >= min_pct:
            return {"letter": letter, "remark": remark, "percentage": round(pct, 2)}

    return {"letter": "F", "remark": GRADE_REMARKS["F"], "percentage": round(pct, 2)}


def merit_level(points: Optional[float]) -> str:
    """Behavioral tier for a net merit point total."""
    try:
        value = float(points)
    except (TypeError, ValueError):
        return BASE_MERIT_LEVEL
    for min_points, level in MERIT_LEVELS:
        if value >= min_points:
            return level
    return BASE_MERIT_LEVEL


def get_all_grade_thresholds() -> List[Dict[str, Any]]:
    """Return the full grade scale for legend/reference."""
    thresholds = []
    for idx, (min_pct, letter, remark) in enumerate(GRADE_BANDS):
        max_pct = 100.0 if idx == 0 else GRADE_BANDS[idx - 1][0] - 0.01
        thresholds.append(
            {
                "min": min_pct,
                "max": round(max_pct, 2),
                "label": letter,
                "description": remark,
            }
        )
    return thresholds


def get_merit_levels() -> List[Dict[str, Any]]:
    """Merit tiers, highest first, for legend/reference."""
    levels = [{"level": level, "min_points": min_points} for min_points, level in MERIT_LEVELS]
    levels.append({"level": BASE_MERIT_LEVEL, "min_points": None})
    return levels
