# app/services/log_store.py
"""
Event log store over the pass_log table.

Only three operations are used by the pass core:
  scan_today()    — parse today's rows into LogRecords (bad rows skipped, never fatal)
  append()        — add a new row
  update_field()  — change one cell of an existing row

Any database error is raised as StoreUnavailable; it is the only failure
that propagates to the caller.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import DataAnomaly, StoreUnavailable
from app.models.pass_log import PassLogEntry
from app.services.time_parser import (
    ParsedTime,
    format_log_date,
    parse_log_date,
    parse_optional_time,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = {"out_time", "back_time", "hold_notice"}
SCAN_BATCH_SIZE = 200


@dataclass
class LogRecord:
    row_id: int
    log_date: date
    student: str
    student_id: str
    gender: str
    teacher: str
    out_time: Optional[ParsedTime] = None
    back_time: Optional[ParsedTime] = None
    hold_notice: str = ""

    @property
    def is_open(self) -> bool:
        """Granted and not yet returned."""
        return self.out_time is not None and self.back_time is None

    @property
    def is_complete(self) -> bool:
        return self.out_time is not None and self.back_time is not None

    @property
    def is_waiting(self) -> bool:
        return bool(self.hold_notice) and self.out_time is None and self.back_time is None


def parse_row(row: PassLogEntry) -> LogRecord:
    """Normalise one table row. Raises DataAnomaly for unparseable date/time cells."""
    try:
        return LogRecord(
            row_id=row.id,
            log_date=parse_log_date(row.log_date),
            student=(row.student_name or "").strip(),
            student_id=(row.student_id or "").strip(),
            gender=(row.gender or "").strip().upper(),
            teacher=(row.teacher or "").strip(),
            out_time=parse_optional_time(row.out_time),
            back_time=parse_optional_time(row.back_time),
            hold_notice=(row.hold_notice or "").strip(),
        )
    except DataAnomaly as e:
        raise DataAnomaly(str(e), row_id=row.id)


class EventLogStore:
    def __init__(self, db: Session):
        self.db = db

    def scan_today(self, today: Optional[date] = None) -> list[LogRecord]:
        """
        Today's records in append order.
        Walks newest to oldest and stops at the first row dated before today,
        so earlier days are never read. Rows dated after today and
        unparseable rows are skipped.
        """
        today = today or date.today()
        records: list[LogRecord] = []
        skipped = 0
        for row in self._newest_first():
            if not (row.student_name or "").strip():
                continue
            try:
                record = parse_row(row)
            except DataAnomaly as e:
                skipped += 1
                logger.warning(f"[LOG] Skipping malformed row: {e}")
                continue

            if record.log_date < today:
                break
            if record.log_date > today:
                continue
            records.append(record)

        records.reverse()
        logger.debug(f"[LOG] {len(records)} row(s) for {today} ({skipped} skipped)")
        return records

    def _newest_first(self):
        """Yield rows newest first, SCAN_BATCH_SIZE rows per query."""
        before = None
        while True:
            try:
                q = self.db.query(PassLogEntry)
                if before is not None:
                    q = q.filter(PassLogEntry.id < before)
                batch = q.order_by(PassLogEntry.id.desc()).limit(SCAN_BATCH_SIZE).all()
            except SQLAlchemyError as e:
                logger.error(f"[LOG] Cannot read pass log: {e}")
                raise StoreUnavailable(f"Cannot read pass log: {e}") from e
            yield from batch
            if len(batch) < SCAN_BATCH_SIZE:
                return
            before = batch[-1].id

    def append(self, student: str, student_id: str, gender: str, teacher: str,
               out_time: str = "", back_time: str = "", hold_notice: str = "",
               today: Optional[date] = None) -> PassLogEntry:
        if out_time and hold_notice:
            raise ValueError("A log row is either a granted pass or a waiting entry, not both")
        entry = PassLogEntry(
            log_date=format_log_date(today or date.today()),
            student_name=student,
            student_id=student_id,
            gender=gender,
            teacher=teacher,
            out_time=out_time,
            back_time=back_time,
            hold_notice=hold_notice,
            created_at=datetime.utcnow(),
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[LOG] Append failed for {student}: {e}")
            raise StoreUnavailable(f"Cannot append to pass log: {e}") from e
        logger.info(f"[LOG] Row {entry.id} appended: {student} gender={gender} "
                    f"out={out_time or '-'} back={back_time or '-'} hold={hold_notice or '-'}")
        return entry

    def update_field(self, row_id: int, field: str, value: str):
        self.update_fields(row_id, **{field: value})

    def update_fields(self, row_id: int, **values: str):
        """Change several cells of one row in a single commit; all or none are written."""
        bad = set(values) - UPDATABLE_FIELDS
        if bad or not values:
            raise ValueError(f"Field(s) {sorted(bad)!r} cannot be updated in place")
        try:
            entry = self.db.query(PassLogEntry).filter(PassLogEntry.id == row_id).first()
            if entry is None:
                raise StoreUnavailable(f"Pass log row {row_id} no longer exists")
            for field, value in values.items():
                setattr(entry, field, value)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[LOG] Update of row {row_id} {sorted(values)} failed: {e}")
            raise StoreUnavailable(f"Cannot update pass log: {e}") from e
        changes = ", ".join(f"{field} -> {value or '(cleared)'}" for field, value in values.items())
        logger.info(f"[LOG] Row {row_id} {changes}")
