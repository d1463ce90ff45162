# app/schemas/pass_log.py
from pydantic import BaseModel
from datetime import date
from typing import Optional


class PassRequestIn(BaseModel):
    student: str
    gender: str              # G | B
    teacher: str


class PassReturnIn(BaseModel):
    student: str
    teacher: str
    gender: Optional[str] = None


class BatchUpdateIn(BaseModel):
    student: str
    action: str              # out | back
    teacher: str
    gender: Optional[str] = None


class BatchIn(BaseModel):
    updates: list[BatchUpdateIn]


class StatusOut(BaseModel):
    student: str
    state: str               # available | out | waiting
    gender: Optional[str] = None
    teacher: Optional[str] = None
    out_time: Optional[str] = None
    position: Optional[int] = None
    hold_notice: Optional[str] = None


class RejectionOut(BaseModel):
    kind: str
    reason: str
    period: Optional[str] = None
    message: Optional[str] = None


class PassResultOut(BaseModel):
    student: str
    ok: bool
    status: Optional[StatusOut] = None
    rejection: Optional[RejectionOut] = None


class BatchOut(BaseModel):
    applied: int
    results: list[PassResultOut]
    errors: list[str]


class LimitCheckOut(BaseModel):
    student: str
    allowed: bool
    period: str
    reason: Optional[str] = None
    message: Optional[str] = None
    trips: int


class LogRecordOut(BaseModel):
    row_id: int
    log_date: date
    student: str
    student_id: str
    gender: str
    teacher: str
    out_time: Optional[str] = None
    back_time: Optional[str] = None
    hold_notice: str


class StudentHistoryOut(BaseModel):
    student: str
    records: list[LogRecordOut]
    analysis: dict[str, int]


class BoardStudentOut(BaseModel):
    name: str
    student_id: str
    status: StatusOut


class BoardOut(BaseModel):
    students: list[BoardStudentOut]
    queue: dict[str, list[str]]
