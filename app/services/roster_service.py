# app/services/roster_service.py
"""
Student roster provider.

The roster comes from the daily roster sheet, which is read-only for this
service. Its CSV export is laid out as two header rows, then one student per
row with the name in column A and the ID number in column E.
Imported rows are upserted into the students table; names that disappear
from the sheet are deactivated, not deleted (old log rows still name them).
"""

import csv
import io
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import requests
from sqlalchemy.orm import Session

from app.config import settings
from app.models.student import Student
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RosterEntry:
    name: str
    student_id: str = ""


def parse_roster_csv(text: str, header_rows: Optional[int] = None,
                     name_column: Optional[int] = None, id_column: Optional[int] = None) -> list[RosterEntry]:
    header_rows = settings.ROSTER_HEADER_ROWS if header_rows is None else header_rows
    name_column = settings.ROSTER_NAME_COLUMN if name_column is None else name_column
    id_column = settings.ROSTER_ID_COLUMN if id_column is None else id_column

    rows = list(csv.reader(io.StringIO(text)))
    entries: list[RosterEntry] = []
    seen = set()
    for row in rows[header_rows:]:
        name = row[name_column].strip() if len(row) > name_column else ""
        if not name or name in seen:
            continue
        seen.add(name)
        student_id = row[id_column].strip() if len(row) > id_column else ""
        entries.append(RosterEntry(name=name, student_id=student_id))

    if not entries:
        logger.warning(f"[ROSTER] No students found after {header_rows} header row(s), check the sheet layout")
    else:
        logger.info(f"[ROSTER] Parsed {len(entries)} student(s)")
    return entries


def fetch_roster_csv(url: Optional[str] = None, timeout: Optional[int] = None) -> str:
    """Download the roster sheet export. Raises requests exceptions on failure."""
    url = url or settings.ROSTER_CSV_URL
    if not url:
        raise ValueError("No roster URL given and ROSTER_CSV_URL is not set")
    resp = requests.get(url, timeout=timeout or settings.ROSTER_FETCH_TIMEOUT_SECONDS)
    resp.raise_for_status()
    logger.info(f"[ROSTER] Downloaded roster export ({len(resp.content)} bytes)")
    return resp.text


def import_roster(db: Session, entries: list[RosterEntry]) -> dict:
    """Upsert roster entries by name and deactivate students missing from the import."""
    now = datetime.utcnow()
    existing = {s.name: s for s in db.query(Student).all()}
    incoming = {e.name for e in entries}
    added = updated = deactivated = 0

    for entry in entries:
        student = existing.get(entry.name)
        if student is None:
            db.add(Student(name=entry.name, student_id=entry.student_id, is_active=1, updated_at=now))
            added += 1
        elif student.student_id != entry.student_id or not student.is_active:
            student.student_id = entry.student_id
            student.is_active = 1
            student.updated_at = now
            updated += 1

    for name, student in existing.items():
        if name not in incoming and student.is_active:
            student.is_active = 0
            student.updated_at = now
            deactivated += 1

    db.commit()
    logger.info(f"[ROSTER] Import: {added} added, {updated} updated, {deactivated} deactivated")
    return {"added": added, "updated": updated, "deactivated": deactivated, "total": len(entries)}


def list_students(db: Session, include_inactive: bool = False):
    q = db.query(Student)
    if not include_inactive:
        q = q.filter(Student.is_active == 1)
    return q.order_by(Student.name).all()


def lookup_student_id(db: Session, name: str) -> str:
    """Roster ID number for a student name, "" if the name is not on the roster."""
    student = db.query(Student).filter(Student.name == name).first()
    if not student:
        logger.warning(f"[ROSTER] {name} is not on the roster, logging without an ID")
        return ""
    return student.student_id or ""
