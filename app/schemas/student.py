# app/schemas/student.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class StudentCreate(BaseModel):
    name: str
    student_id: Optional[str] = None


class StudentOut(BaseModel):
    id: int
    name: str
    student_id: Optional[str]
    is_active: int
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class RosterImportIn(BaseModel):
    url: Optional[str] = None        # defaults to ROSTER_CSV_URL
    csv_text: Optional[str] = None   # paste the export directly instead of downloading
