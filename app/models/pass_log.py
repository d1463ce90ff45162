# app/models/pass_log.py
"""
Restroom pass log table: the append-only event log that all status is derived from.
One row per pass event. Column order mirrors the sheet the front office reads:
Date | Student Name | Student ID | Gender | Teacher | Out Time | Back Time | Hold Notice

Rows are only ever appended or updated in place on the same day
(back time added, waiting row promoted, hold notice position rewritten).
"""

from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


class PassLogEntry(Base):
    __tablename__ = "pass_log"

    id = Column(Integer, primary_key=True, autoincrement=True)   # append order
    log_date = Column(String(20), nullable=False, index=True)     # M/D/YYYY as written
    student_name = Column(String(200), index=True)
    student_id = Column(String(50))
    gender = Column(String(1))                                    # G | B
    teacher = Column(String(200))
    out_time = Column(String(40))                                 # H:MM AM/PM
    back_time = Column(String(40))
    hold_notice = Column(String(200))                             # "Waiting in line. Position N."
    created_at = Column(DateTime)

    def __repr__(self):
        return (f"<PassLogEntry {self.id} {self.student_name} gender={self.gender} "
                f"out={self.out_time} back={self.back_time} hold={self.hold_notice}>")
