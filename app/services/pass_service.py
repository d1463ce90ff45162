# app/services/pass_service.py
"""
Pass actions — the single entry point for every status change.

request_access / return_access rebuild today's state from a fresh log scan on
every call and then write at most a few rows:

  available + request → rejected (usage limit) | waiting (lane busy) | out (lane free)
  waiting   + request → out (teacher grants the pass), line renumbered
  out       + return  → available, line renumbered
  waiting   + return  → rejected, nothing written
  available + return  → back-only row (degraded fallback), warning logged

Rejections are returned, not raised. Only StoreUnavailable escapes.

Calls are assumed to be serialized by the host (one request at a time).
SubmissionGuard only damps double clicks; it is not a lock.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.services.gate_service import is_occupied, occupant
from app.services.log_store import EventLogStore, LogRecord
from app.services.queue_service import (
    GENDERS,
    enqueue,
    ordered_waiters,
    promote_to_granted,
    queue_lists,
    recalculate_positions,
    waiting_count,
)
from app.services.roster_service import list_students, lookup_student_id
from app.services.status_service import (
    AVAILABLE,
    OUT,
    WAITING,
    StudentStatus,
    derive_statuses,
    status_for,
)
from app.services.time_parser import format_time_hhmm
from app.services.usage_limit_service import LimitCheck, check_limit
from app.utils.logger import get_logger

logger = get_logger(__name__)

ACTIONS = ("out", "back")


@dataclass(frozen=True)
class Rejection:
    kind: str               # validation | limit | occupied | duplicate | invalid_transition
    reason: str
    period: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class PassResult:
    student: str
    status: Optional[StudentStatus] = None
    rejection: Optional[Rejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


@dataclass
class BatchOutcome:
    results: list[PassResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class SubmissionGuard:
    """
    Rejects a repeat of the same transition for a student within a short window.

    Keyed by (student, action, state the action started from) and recorded only
    after the action wrote to the log, so a rejected attempt or a different
    transition (waiting -> out after available -> waiting) is never blocked.
    """

    def __init__(self, window_seconds: Optional[int] = None):
        self.window_seconds = settings.DOUBLE_SUBMIT_WINDOW_SECONDS if window_seconds is None else window_seconds
        self._last_seen: dict[tuple[str, str, str], datetime] = {}

    def is_duplicate(self, student: str, action: str, state: str, now: datetime) -> bool:
        last = self._last_seen.get((student, action, state))
        return last is not None and timedelta(0) <= now - last < timedelta(seconds=self.window_seconds)

    def record(self, student: str, action: str, state: str, now: datetime):
        self._last_seen[(student, action, state)] = now

    def clear(self):
        self._last_seen.clear()


submission_guard = SubmissionGuard()


# ── Validation ───────────────────────────────────────────────────────────────

def _validate(student: str, teacher: str, gender: str, require_gender: bool) -> Optional[Rejection]:
    if not student:
        return Rejection(kind="validation", reason="Student name is required")
    if not teacher:
        return Rejection(kind="validation", reason="Teacher name is required")
    if require_gender and not gender:
        return Rejection(kind="validation",
                         reason="Gender (G or B) must be selected before marking student out")
    if gender and gender not in GENDERS:
        return Rejection(kind="validation", reason="Gender must be either 'G' or 'B'")
    return None


def _clean(value) -> str:
    return (value or "").strip()


def _reject(student: str, rejection: Rejection) -> PassResult:
    logger.warning(f"[PASS] {student or '(no name)'} rejected ({rejection.kind}): {rejection.reason}")
    return PassResult(student=student, rejection=rejection)


def _duplicate(student: str, intent: str) -> Rejection:
    return Rejection(kind="duplicate", reason=f"{intent} already submitted",
                     message=f"{student} was just submitted, please wait a moment")


def _current_status(store: EventLogStore, student: str, now: datetime) -> StudentStatus:
    return status_for(derive_statuses(store.scan_today(now.date())), student)


# ── Read operations ──────────────────────────────────────────────────────────

def today_records(db: Session, now: Optional[datetime] = None) -> list[LogRecord]:
    now = now or datetime.now()
    return EventLogStore(db).scan_today(now.date())


def get_statuses(db: Session, now: Optional[datetime] = None) -> dict[str, StudentStatus]:
    return derive_statuses(today_records(db, now))


def get_student_status(db: Session, student: str, now: Optional[datetime] = None) -> StudentStatus:
    return status_for(get_statuses(db, now), _clean(student))


def check_usage_limit(db: Session, student: str, now: Optional[datetime] = None) -> LimitCheck:
    now = now or datetime.now()
    return check_limit(_clean(student), today_records(db, now), now)


def get_queue(db: Session, gender: str, now: Optional[datetime] = None) -> list[StudentStatus]:
    return ordered_waiters(_clean(gender).upper(), get_statuses(db, now))


def get_board(db: Session, now: Optional[datetime] = None) -> dict:
    """Roster joined with today's statuses, plus both waiting lines."""
    statuses = get_statuses(db, now)
    students = [
        {"name": s.name, "student_id": s.student_id or "", "status": status_for(statuses, s.name)}
        for s in list_students(db)
    ]
    return {"students": students, "queue": queue_lists(statuses)}


def student_history(db: Session, student: str, now: Optional[datetime] = None) -> dict:
    """Today's rows for one student with a breakdown by row shape."""
    student = _clean(student)
    records = [r for r in today_records(db, now) if r.student == student]
    analysis = {
        "total_entries": len(records),
        "complete_entries": sum(1 for r in records if r.is_complete),
        "out_entries": sum(1 for r in records if r.is_open),
        "back_entries": sum(1 for r in records if r.back_time is not None and r.out_time is None),
        "waiting_entries": sum(1 for r in records if r.is_waiting),
    }
    return {"student": student, "records": records, "analysis": analysis}


# ── State transitions ────────────────────────────────────────────────────────

def request_access(db: Session, student: str, gender: str, teacher: str,
                   now: Optional[datetime] = None) -> PassResult:
    now = now or datetime.now()
    student, teacher, gender = _clean(student), _clean(teacher), _clean(gender).upper()

    rejection = _validate(student, teacher, gender, require_gender=True)
    if rejection:
        return _reject(student, rejection)

    today = now.date()
    store = EventLogStore(db)
    records = store.scan_today(today)
    statuses = derive_statuses(records)
    current = status_for(statuses, student)
    out_label = format_time_hhmm(now)

    if submission_guard.is_duplicate(student, "out", current.state, now):
        return _reject(student, _duplicate(student, "request"))

    if current.state == WAITING:
        lane = current.gender or gender
        holder = occupant(lane, statuses)
        if holder is not None:
            return _reject(student, Rejection(
                kind="occupied",
                reason="restroom occupied",
                message=f"{holder.student} is still out of the {lane} restroom",
            ))
        promote_to_granted(store, records, student, lookup_student_id(db, student),
                           lane, teacher, out_label, today)
        submission_guard.record(student, "out", current.state, now)
        recalculate_positions(store, lane, today)
        logger.info(f"[PASS] {student} granted from line by {teacher} at {out_label}")
        return PassResult(student=student, status=_current_status(store, student, now))

    limit = check_limit(student, records, now)
    if not limit.allowed:
        return _reject(student, Rejection(kind="limit", reason=limit.reason,
                                          period=limit.period, message=limit.message))

    student_id = lookup_student_id(db, student)
    if is_occupied(gender, statuses):
        position = waiting_count(gender, statuses) + 1
        enqueue(store, student, student_id, gender, teacher, position, today)
    else:
        store.append(student, student_id, gender, teacher, out_time=out_label, today=today)
        logger.info(f"[PASS] {student} out to {gender} restroom at {out_label} ({teacher})")
    submission_guard.record(student, "out", current.state, now)

    return PassResult(student=student, status=_current_status(store, student, now))


def return_access(db: Session, student: str, teacher: str, gender: Optional[str] = None,
                  now: Optional[datetime] = None) -> PassResult:
    now = now or datetime.now()
    student, teacher, gender = _clean(student), _clean(teacher), _clean(gender).upper()

    rejection = _validate(student, teacher, gender, require_gender=False)
    if rejection:
        return _reject(student, rejection)

    today = now.date()
    store = EventLogStore(db)
    records = store.scan_today(today)
    current = status_for(derive_statuses(records), student)
    back_label = format_time_hhmm(now)

    if submission_guard.is_duplicate(student, "back", current.state, now):
        return _reject(student, _duplicate(student, "return"))

    if current.state == WAITING:
        return _reject(student, Rejection(
            kind="invalid_transition",
            reason="waiting in line, not out",
            message=f"{student} is waiting in line and has not left the room",
        ))

    if current.state == OUT:
        open_record = next(r for r in reversed(records) if r.student == student and r.is_open)
        store.update_field(open_record.row_id, "back_time", back_label)
        submission_guard.record(student, "back", current.state, now)
        lane = open_record.gender
        logger.info(f"[PASS] {student} back from {lane} restroom at {back_label}")
        recalculate_positions(store, lane, today)
        if settings.AUTO_PROMOTE_ON_RETURN:
            _promote_head(store, lane, teacher, now)
        return PassResult(student=student, status=_current_status(store, student, now))

    # Returned without an open pass today: keep the back time on record anyway
    logger.warning(f"[PASS] No open pass for {student}, logging a back-only row")
    store.append(student, lookup_student_id(db, student), gender, teacher,
                 back_time=back_label, today=today)
    submission_guard.record(student, "back", current.state, now)
    return PassResult(student=student, status=StudentStatus(student=student, state=AVAILABLE))


def _promote_head(store: EventLogStore, lane: str, teacher: str, now: datetime):
    today = now.date()
    records = store.scan_today(today)
    waiters = ordered_waiters(lane, derive_statuses(records))
    if not waiters:
        return
    head = waiters[0]
    promote_to_granted(store, records, head.student, "", lane, head.teacher or teacher,
                       format_time_hhmm(now), today)
    recalculate_positions(store, lane, today)
    logger.info(f"[PASS] {head.student} auto-promoted into {lane} restroom")


def process_batch(db: Session, updates: list[dict], now: Optional[datetime] = None) -> BatchOutcome:
    """
    Apply several out/back updates in order. All updates are validated first;
    if any is invalid nothing is applied.
    """
    outcome = BatchOutcome()
    if not updates:
        outcome.errors.append("Updates must be a non-empty list")
        return outcome
    if len(updates) > settings.BATCH_MAX_UPDATES:
        outcome.errors.append(f"Batch size limited to {settings.BATCH_MAX_UPDATES} updates per request")
        return outcome

    for i, update in enumerate(updates):
        action = _clean(update.get("action")).lower()
        if action not in ACTIONS:
            outcome.errors.append(f"Update {i}: Action must be 'out' or 'back'")
            continue
        rejection = _validate(_clean(update.get("student")), _clean(update.get("teacher")),
                              _clean(update.get("gender")).upper(), require_gender=action == "out")
        if rejection:
            outcome.errors.append(f"Update {i}: {rejection.reason}")
    if outcome.errors:
        logger.warning(f"[PASS] Batch rejected: {'; '.join(outcome.errors)}")
        return outcome

    for update in updates:
        if _clean(update.get("action")).lower() == "out":
            result = request_access(db, update.get("student"), update.get("gender"), update.get("teacher"), now)
        else:
            result = return_access(db, update.get("student"), update.get("teacher"), update.get("gender"), now)
        outcome.results.append(result)

    applied = sum(1 for r in outcome.results if r.ok)
    logger.info(f"[PASS] Batch of {len(updates)}: {applied} applied, {len(updates) - applied} rejected")
    return outcome
