"""
bulk.py — Whole-class report generation.

Every student on the roster is attempted.  A failure for one student
(missing records, unknown subject data, a timeout ...) is recorded as
"{student name}: {reason}" and the batch carries on; the batch itself
never raises because of a single student.

For CA and term batches the class aggregate used for ranking is computed
once and shared by every report in the batch.

A per-report timeout is measured from the moment that report starts
running, so a slow student never eats into the budget of the students
queued behind it.  Reports are saved only after they finish in time.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Callable, Dict, List, Optional

from core.config import ReportConfig, ReportPeriod
from core.ranking import compute_class_aggregate
from core.report_builder import (
    REPORT_KINDS,
    generate_ca_report,
    generate_term_report,
    generate_weekly_report,
)
from core.sources import student_name

logger = logging.getLogger(__name__)


class ReportTimeout(Exception):
    """One report ran past its per-report deadline."""


def _generator(
    source: Any,
    report_kind: str,
    period: ReportPeriod,
    generated_by: str,
    config: ReportConfig,
    class_aggregate: Any,
    week_start: Any,
    week_end: Any,
    next_term_begins: Any,
) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    # No store here: the batch saves a report only once it has finished in time.
    if report_kind in ("ca1", "ca2"):
        return lambda student: generate_ca_report(
            source, student["id"], period, report_kind, generated_by,
            config=config, class_aggregate=class_aggregate,
        )
    if report_kind == "term":
        return lambda student: generate_term_report(
            source, student["id"], period, generated_by,
            config=config, class_aggregate=class_aggregate,
            next_term_begins=next_term_begins,
        )
    return lambda student: generate_weekly_report(
        source, student["id"], week_start, week_end, period, generated_by,
        config=config,
    )


def _with_deadline(
    generate_one: Callable[[Dict[str, Any]], Dict[str, Any]],
    student: Dict[str, Any],
    timeout: Optional[float],
) -> Dict[str, Any]:
    """
    Run one report, giving up after `timeout` seconds of its own run time.
    The report runs on a throwaway thread so an overrunning report does not
    hold a batch worker; its result is discarded.
    """
    if timeout is None:
        return generate_one(student)
    runner = ThreadPoolExecutor(max_workers=1, thread_name_prefix="report-deadline")
    try:
        return runner.submit(generate_one, student).result(timeout=timeout)
    except FutureTimeout:
        raise ReportTimeout(f"timed out after {timeout:g}s") from None
    finally:
        runner.shutdown(wait=False)


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def generate_bulk(
    source: Any,
    class_id: str,
    period: ReportPeriod,
    report_kind: str,
    generated_by: str = "system",
    config: Optional[ReportConfig] = None,
    store: Any = None,
    week_start: Any = None,
    week_end: Any = None,
    next_term_begins: Any = None,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Generate one report per student in a class.

    Returns {"success_count", "failed_count", "errors", "report_ids"}.
    `max_workers` > 1 runs students on a bounded thread pool; `timeout`
    bounds the run time of each report, counted from when it starts.
    """
    config = config or ReportConfig()
    if report_kind not in REPORT_KINDS:
        raise ValueError(f"Unsupported report kind: {report_kind!r}. Use one of {list(REPORT_KINDS)}.")
    if report_kind == "weekly" and (week_start is None or week_end is None):
        raise ValueError("Weekly reports need week_start and week_end.")

    workers = max(1, int(max_workers or config.bulk_max_workers))
    timeout = timeout if timeout is not None else config.report_timeout_seconds

    roster = source.get_students_by_class(class_id)
    logger.info("Bulk %s reports for class %s (%s %s): %d students, %d workers",
                report_kind, class_id, period.term, period.session, len(roster), workers)

    class_aggregate = None
    if report_kind != "weekly" and roster:
        mode = "term" if report_kind == "term" else report_kind
        try:
            class_aggregate = compute_class_aggregate(source, roster, period, mode)
        except Exception as exc:
            # Each report then ranks itself.
            logger.warning("Shared class aggregate failed for %s, ranking per report: %s", class_id, exc)

    generate_one = _generator(
        source, report_kind, period, generated_by, config,
        class_aggregate, week_start, week_end, next_term_begins,
    )

    success_count = 0
    errors: List[str] = []
    report_ids: List[str] = []

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="report") as pool:
        futures = [(student, pool.submit(_with_deadline, generate_one, student, timeout)) for student in roster]
        for student, future in futures:
            name = student_name(student)
            try:
                report = future.result()
            except Exception as exc:
                errors.append(f"{name}: {_error_message(exc)}")
                logger.warning("Report for %s failed: %s", name, exc)
                continue
            if store is not None:
                store.save(report)
            success_count += 1
            report_ids.append(report["id"])

    result = {
        "success_count": success_count,
        "failed_count": len(errors),
        "errors": errors,
        "report_ids": report_ids,
    }
    logger.info("Bulk %s reports for class %s done: %d succeeded, %d failed",
                report_kind, class_id, success_count, len(errors))
    return result
