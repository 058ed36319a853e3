"""
config.py — Environment-driven settings for report generation.

Values come from the process environment (optionally a .env file).
Nothing in the aggregation code reads these directly: callers build a
ReportConfig / ReportPeriod once and pass it down.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

# Month (1-12) in which each term begins; used for weekly report numbering.
DEFAULT_TERM_START_MONTHS = {
    "First Term": 9,
    "Second Term": 1,
    "Third Term": 5,
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value > 0 else None


@dataclass(frozen=True)
class ReportPeriod:
    """The academic period every record query is scoped to."""

    term: str
    session: str


@dataclass(frozen=True)
class ReportConfig:
    school_name: str = "My School"
    current_term: str = "First Term"
    current_session: str = "2025/2026"
    promotion_mark: float = 40.0
    ca_max_score: float = 20.0
    term_max_score: float = 100.0
    bulk_max_workers: int = 1
    report_timeout_seconds: Optional[float] = None
    log_level: str = "INFO"
    data_dir: Optional[str] = None
    cors_origins: List[str] = field(default_factory=list)
    term_start_months: Dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_TERM_START_MONTHS)
    )

    def default_period(self) -> ReportPeriod:
        return ReportPeriod(term=self.current_term, session=self.current_session)


def load_config() -> ReportConfig:
    """Build a ReportConfig from environment variables."""
    # Comma-separated allowed origins, e.g. http://localhost:5173,https://admin.example.com
    raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
    return ReportConfig(
        school_name=os.getenv("SCHOOL_NAME", "My School"),
        current_term=os.getenv("CURRENT_TERM", "First Term"),
        current_session=os.getenv("CURRENT_SESSION", "2025/2026"),
        promotion_mark=float(_env_int("PROMOTION_MARK", 40)),
        ca_max_score=float(_env_int("CA_MAX_SCORE", 20)),
        bulk_max_workers=max(1, _env_int("BULK_MAX_WORKERS", 1)),
        report_timeout_seconds=_env_float("REPORT_TIMEOUT_SECONDS"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        data_dir=os.getenv("DATA_DIR") or None,
        cors_origins=[o.strip() for o in raw_origins.split(",") if o.strip()],
    )


@lru_cache(maxsize=1)
def get_config() -> ReportConfig:
    """The process-wide ReportConfig, read from the environment once."""
    return load_config()
