"""
insights.py — Rule-based strengths and areas for improvement.

Evaluates one week's attendance, classwork, homework and behavior against
fixed thresholds.  A rule only fires when the data it looks at exists:
a week with no homework says nothing about homework.

Zero AI dependency — every insight is a deterministic threshold check.
"""

from typing import Any, Dict, List, Tuple

from core.aggregator import work_summary

# Attendance percentage
ATTENDANCE_STRONG = 90.0
ATTENDANCE_WEAK = 70.0

# Classwork / homework scores are marked out of 10
WORK_STRONG = 7.0
WORK_WEAK = 5.0

# Participation: records per subject in the week
PARTICIPATION_STRONG_PER_SUBJECT = 2


def _attendance_rules(attendance: Dict[str, Any], strengths: List[str], improve: List[str]):
    if attendance.get("total_days", 0) <= 0:
        return
    pct = attendance.get("percentage", 0.0)
    if pct >= ATTENDANCE_STRONG:
        strengths.append("Excellent attendance record")
    elif pct < ATTENDANCE_WEAK:
        improve.append("Improve attendance consistency")


def _classwork_rules(average: float, count: int, subjects: int, strengths: List[str], improve: List[str]):
    if count > 0:
        if average >= WORK_STRONG:
            strengths.append("Strong academic performance in classwork")
        elif average < WORK_WEAK:
            improve.append("Focus on improving classwork scores")

    if subjects > 0:
        if count >= subjects * PARTICIPATION_STRONG_PER_SUBJECT:
            strengths.append("Active participation in classwork activities")
        elif count < subjects:
            improve.append("Increase participation in classwork activities")


def _homework_rules(average: float, count: int, subjects: int, strengths: List[str], improve: List[str]):
    if count > 0:
        if average >= WORK_STRONG:
            strengths.append("Excellent homework completion and performance")
        elif average < WORK_WEAK:
            improve.append("Improve homework quality and understanding")

    if subjects > 0:
        if count >= subjects * PARTICIPATION_STRONG_PER_SUBJECT:
            strengths.append("Consistent homework submission")
        elif count < subjects:
            improve.append("Submit homework more regularly")


def _behavior_rules(net_points: int, strengths: List[str], improve: List[str]):
    if net_points > 0:
        strengths.append("Positive behavior and good conduct")
    elif net_points < 0:
        improve.append("Work on behavior and classroom conduct")


def weekly_observations(
    attendance: Dict[str, Any],
    academics: List[Dict[str, Any]],
    behavior: Dict[str, Any],
) -> Tuple[List[str], List[str]]:
    """Return (strengths, areas_for_improvement) for one weekly report."""
    strengths: List[str] = []
    improve: List[str] = []
    subjects = len(academics)
    classwork = work_summary(academics, "classwork")
    homework = work_summary(academics, "homework")

    _attendance_rules(attendance, strengths, improve)
    _classwork_rules(classwork["average"], classwork["count"], subjects, strengths, improve)
    _homework_rules(homework["average"], homework["count"], subjects, strengths, improve)
    _behavior_rules(int(behavior.get("net_points", 0)), strengths, improve)

    return strengths, improve
