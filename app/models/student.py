# app/models/student.py
"""
Student roster table.
Loaded from the daily roster sheet export (name + ID number) and
used to fill the Student ID column of new pass log rows.
"""

from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), unique=True, nullable=False, index=True)
    student_id = Column(String(50))
    is_active = Column(Integer, default=1, nullable=False)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<Student {self.name} id={self.student_id} active={self.is_active}>"
