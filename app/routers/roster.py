# app/routers/roster.py
"""Student roster — list, add, and import from the daily roster sheet export."""

import requests
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from datetime import datetime
from app.database import get_db
from app.models.student import Student
from app.schemas.student import RosterImportIn, StudentCreate, StudentOut
from app.services import roster_service
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/roster", response_model=list[StudentOut], summary="List students on the roster")
def list_roster(include_inactive: bool = False, db: Session = Depends(get_db)):
    return roster_service.list_students(db, include_inactive=include_inactive)


@router.post("/roster", summary="Add one student to the roster")
def add_student(body: StudentCreate, db: Session = Depends(get_db)):
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="Student name is required")
    existing = db.query(Student).filter(Student.name == name).first()
    if existing and existing.is_active:
        raise HTTPException(status_code=400, detail=f"{name} is already on the roster")
    if existing:
        existing.is_active = 1
        existing.student_id = body.student_id or existing.student_id
        existing.updated_at = datetime.utcnow()
    else:
        db.add(Student(name=name, student_id=body.student_id or "", is_active=1,
                       updated_at=datetime.utcnow()))
    db.commit()
    return {"status": "added", "name": name}


@router.post("/roster/import", summary="Replace the roster from the daily sheet export")
def import_roster(body: RosterImportIn, db: Session = Depends(get_db)):
    """
    Pass `csv_text` to import a pasted export, or `url` (default ROSTER_CSV_URL)
    to download it. Students missing from the import are deactivated.
    """
    text = body.csv_text
    if text is None:
        try:
            text = roster_service.fetch_roster_csv(body.url)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except requests.exceptions.RequestException as e:
            logger.error(f"[ROSTER] Download failed: {e}")
            raise HTTPException(status_code=502, detail=f"Could not download roster: {e}")

    entries = roster_service.parse_roster_csv(text)
    if not entries:
        raise HTTPException(status_code=422, detail="No students found in roster export")
    return roster_service.import_roster(db, entries)
