# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + roster source reachability.
"""

import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from app.database import get_db
from app.config import settings
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Roster export reachability (only if ROSTER_CSV_URL is set)
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "roster_source": "not configured",
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    if settings.ROSTER_CSV_URL:
        try:
            resp = requests.head(settings.ROSTER_CSV_URL, timeout=3, allow_redirects=True)
            result["roster_source"] = "ok" if resp.status_code < 400 else f"http_{resp.status_code}"
        except requests.exceptions.ConnectionError:
            result["roster_source"] = "unreachable"
            result["status"] = "degraded"
        except Exception as e:
            result["roster_source"] = f"error: {str(e)}"

    return result
