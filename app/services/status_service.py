# app/services/status_service.py
"""
Status derivation — reduces today's pass log into one status per student.

For each student the LAST of today's records (append order) decides:
  back time set                  → available
  out time set, no back time     → out
  hold notice only               → waiting
  anything else                  → available

Earlier trips that day are deliberately ignored here; the usage limit
service counts them separately.
"""

import re
from dataclasses import dataclass
from typing import Optional

from app.services.log_store import LogRecord
from app.services.time_parser import ParsedTime
from app.utils.logger import get_logger

logger = get_logger(__name__)

AVAILABLE = "available"
OUT = "out"
WAITING = "waiting"

POSITION_RE = re.compile(r"Position\s+(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class StudentStatus:
    student: str
    state: str                                  # available | out | waiting
    gender: Optional[str] = None
    teacher: Optional[str] = None
    out_time: Optional[ParsedTime] = None
    position: Optional[int] = None
    hold_notice: Optional[str] = None
    row_id: Optional[int] = None                # record the status was derived from


def parse_position(hold_notice: str) -> Optional[int]:
    """Position number embedded in a hold notice, None if there is none."""
    m = POSITION_RE.search(hold_notice or "")
    return int(m.group(1)) if m else None


def status_from_record(record: LogRecord) -> StudentStatus:
    if record.back_time is not None:
        return StudentStatus(student=record.student, state=AVAILABLE, row_id=record.row_id)
    if record.out_time is not None:
        return StudentStatus(
            student=record.student,
            state=OUT,
            gender=record.gender,
            teacher=record.teacher,
            out_time=record.out_time,
            row_id=record.row_id,
        )
    if record.hold_notice:
        return StudentStatus(
            student=record.student,
            state=WAITING,
            gender=record.gender,
            teacher=record.teacher,
            position=parse_position(record.hold_notice),
            hold_notice=record.hold_notice,
            row_id=record.row_id,
        )
    return StudentStatus(student=record.student, state=AVAILABLE, row_id=record.row_id)


def derive_statuses(records: list[LogRecord]) -> dict[str, StudentStatus]:
    """Map every student with a record today to their current status."""
    latest: dict[str, LogRecord] = {}
    for record in records:
        if not record.student:
            continue
        current = latest.get(record.student)
        if current is None or record.row_id > current.row_id:
            latest[record.student] = record

    statuses = {name: status_from_record(record) for name, record in latest.items()}
    logger.debug(
        f"[STATUS] {len(statuses)} student(s): "
        f"{sum(s.state == OUT for s in statuses.values())} out, "
        f"{sum(s.state == WAITING for s in statuses.values())} waiting"
    )
    return statuses


def status_for(statuses: dict[str, StudentStatus], student: str) -> StudentStatus:
    """Students without a record today are available."""
    return statuses.get(student) or StudentStatus(student=student, state=AVAILABLE)
