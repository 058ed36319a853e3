"""
Report Engine — school report card generation service.
FastAPI backend entry point.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import get_config
from routes.report_cards import router as report_cards_router

CONFIG = get_config()

logging.basicConfig(
    level=getattr(logging, CONFIG.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Report Engine API",
    description=(
        "CA, end-of-term and weekly report cards with class ranking. "
        "All figures are computed deterministically from recorded scores."
    ),
    version="1.0.0",
)

# CORS: allow the admin dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=CONFIG.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(report_cards_router, prefix="/api/reports", tags=["Report Cards"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "school_name": CONFIG.school_name,
        "current_term": CONFIG.current_term,
        "current_session": CONFIG.current_session,
    }


@app.get("/api/config")
async def server_config():
    """Return server configuration to the frontend."""
    return {
        "school_name": CONFIG.school_name,
        "current_term": CONFIG.current_term,
        "current_session": CONFIG.current_session,
        "promotion_mark": CONFIG.promotion_mark,
        "ca_max_score": CONFIG.ca_max_score,
        "bulk_max_workers": CONFIG.bulk_max_workers,
    }
