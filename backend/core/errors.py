"""
errors.py — Error kinds raised by the report engine.

NotFoundError and NoDataError escape single-report generation.
MalformedDateError and SubjectLookupError are recovered where they occur.
"""


class ReportError(Exception):
    """Base class for report generation failures."""


class NotFoundError(ReportError):
    """A student or class the report depends on does not exist."""


class NoDataError(ReportError):
    """No usable records exist for the requested period."""


class MalformedDateError(ReportError, ValueError):
    """A date field could not be parsed."""


class SubjectLookupError(ReportError):
    """The subject catalog could not resolve a subject id."""
