# app/services/queue_service.py
"""
Waiting line per restroom lane.

The queue is not stored: it is the set of students whose derived status is
"waiting", ordered by the position number written in their hold notice
("Waiting in line. Position N."). Positions are rewritten to a dense 1..N
after every promotion or return, never incremented in place.

The head of the line is NOT moved into the restroom automatically when it
frees up; a teacher grants the next pass (see AUTO_PROMOTE_ON_RETURN).
"""

from datetime import date
from typing import Optional

from app.services.log_store import EventLogStore, LogRecord
from app.services.status_service import WAITING, StudentStatus, derive_statuses
from app.utils.logger import get_logger

logger = get_logger(__name__)

GENDERS = ("G", "B")


def hold_notice_text(position: int) -> str:
    return f"Waiting in line. Position {position}."


def waiting_count(gender: str, statuses: dict[str, StudentStatus]) -> int:
    return sum(1 for s in statuses.values() if s.state == WAITING and s.gender == gender)


def ordered_waiters(gender: str, statuses: dict[str, StudentStatus]) -> list[StudentStatus]:
    """Waiting students of one lane in line order; notices without a number go last."""
    waiters = [s for s in statuses.values() if s.state == WAITING and s.gender == gender]
    return sorted(waiters, key=lambda s: (s.position is None, s.position or 0, s.row_id or 0))


def queue_lists(statuses: dict[str, StudentStatus]) -> dict[str, list[str]]:
    return {gender: [s.student for s in ordered_waiters(gender, statuses)] for gender in GENDERS}


def enqueue(store: EventLogStore, student: str, student_id: str, gender: str, teacher: str,
            position: int, today: Optional[date] = None):
    notice = hold_notice_text(position)
    entry = store.append(student, student_id, gender, teacher, hold_notice=notice, today=today)
    logger.info(f"[QUEUE] {student} waiting for {gender} restroom at position {position}")
    return entry


def promote_to_granted(store: EventLogStore, records: list[LogRecord], student: str,
                       student_id: str, gender: str, teacher: str, out_time: str,
                       today: Optional[date] = None) -> int:
    """
    Turn the student's latest waiting row into a granted pass.
    Falls back to appending a fresh out row if no waiting row is found.
    Returns the row id that now holds the pass.
    """
    for record in reversed(records):
        if record.student == student and record.is_waiting:
            store.update_fields(record.row_id, out_time=out_time, hold_notice="")
            logger.info(f"[QUEUE] {student} promoted from line (row {record.row_id}) at {out_time}")
            return record.row_id

    logger.warning(f"[QUEUE] No waiting row found for {student}, logging a new out row")
    entry = store.append(student, student_id, gender, teacher, out_time=out_time, today=today)
    return entry.id


def recalculate_positions(store: EventLogStore, gender: str, today: Optional[date] = None) -> int:
    """
    Rewrite the hold notices of one lane to a dense 1..N sequence,
    keeping the existing line order. Returns the number of rows rewritten.
    """
    statuses = derive_statuses(store.scan_today(today))
    writes = 0
    for position, waiter in enumerate(ordered_waiters(gender, statuses), start=1):
        expected = hold_notice_text(position)
        if waiter.hold_notice != expected:
            store.update_field(waiter.row_id, "hold_notice", expected)
            writes += 1
    if writes:
        logger.info(f"[QUEUE] Renumbered {writes} waiting row(s) in {gender} line")
    return writes
