# app/services/usage_limit_service.py
"""
One restroom trip per student per period (morning / afternoon).

Unlike status derivation this scans ALL of the student's records today:
  - an open pass (out, not back) blocks regardless of period
  - completed trips whose out time falls in the current period are counted
Waiting rows never count.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.config import settings
from app.services.log_store import LogRecord
from app.services.time_parser import period_for_hour
from app.utils.logger import get_logger

logger = get_logger(__name__)

REASON_CURRENTLY_OUT = "currently out"


@dataclass(frozen=True)
class LimitCheck:
    allowed: bool
    period: str
    reason: Optional[str] = None
    message: Optional[str] = None
    trips: int = 0


def check_limit(student: str, records: list[LogRecord], now: Optional[datetime] = None,
                cutoff_hour: Optional[int] = None, limit: Optional[int] = None) -> LimitCheck:
    now = now or datetime.now()
    cutoff_hour = settings.PERIOD_CUTOFF_HOUR if cutoff_hour is None else cutoff_hour
    limit = settings.USAGE_LIMIT_PER_PERIOD if limit is None else limit
    period = period_for_hour(now.hour, cutoff_hour)

    own = [r for r in records if r.student == student]

    if any(r.is_open for r in own):
        return LimitCheck(
            allowed=False,
            period=period,
            reason=REASON_CURRENTLY_OUT,
            message=f"{student} is currently out of the room",
        )

    trips = sum(1 for r in own if r.is_complete and r.out_time.period(cutoff_hour) == period)
    if trips >= limit:
        logger.info(f"[LIMIT] {student} blocked: {trips} trip(s) already in the {period}")
        return LimitCheck(
            allowed=False,
            period=period,
            reason=f"already used in {period}",
            message=f"{student} already used the restroom once in the {period}",
            trips=trips,
        )

    return LimitCheck(allowed=True, period=period, trips=trips)
