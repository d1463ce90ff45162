# app/routers/passes.py
"""
Restroom pass endpoints — status board, pass requests/returns, usage limits, log viewer.
Rejected actions come back as 409 (policy) or 422 (bad input) with the
human-readable reason in `detail`, ready to show on the teacher's screen.
"""

from dataclasses import asdict
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.pass_log import (
    BatchIn, BatchOut, BoardOut, LimitCheckOut, LogRecordOut, PassRequestIn,
    PassResultOut, PassReturnIn, StatusOut, StudentHistoryOut,
)
from app.services import pass_service
from app.services.log_store import LogRecord
from app.services.status_service import StudentStatus

router = APIRouter()


def _status_out(status: StudentStatus) -> StatusOut:
    return StatusOut(
        student=status.student,
        state=status.state,
        gender=status.gender,
        teacher=status.teacher,
        out_time=status.out_time.label if status.out_time else None,
        position=status.position,
        hold_notice=status.hold_notice,
    )


def _record_out(record: LogRecord) -> LogRecordOut:
    return LogRecordOut(
        row_id=record.row_id,
        log_date=record.log_date,
        student=record.student,
        student_id=record.student_id,
        gender=record.gender,
        teacher=record.teacher,
        out_time=record.out_time.label if record.out_time else None,
        back_time=record.back_time.label if record.back_time else None,
        hold_notice=record.hold_notice,
    )


def _result_out(result: pass_service.PassResult) -> PassResultOut:
    return PassResultOut(
        student=result.student,
        ok=result.ok,
        status=_status_out(result.status) if result.status else None,
        rejection=asdict(result.rejection) if result.rejection else None,
    )


def _raise_rejection(result: pass_service.PassResult):
    rejection = result.rejection
    raise HTTPException(
        status_code=422 if rejection.kind == "validation" else 409,
        detail={
            "student": result.student,
            "kind": rejection.kind,
            "reason": rejection.reason,
            "period": rejection.period,
            "message": rejection.message or rejection.reason,
        },
    )


@router.get("/status", response_model=list[StatusOut], summary="Current status of every student with a pass today")
def get_all_statuses(db: Session = Depends(get_db)):
    statuses = pass_service.get_statuses(db)
    return [_status_out(s) for s in sorted(statuses.values(), key=lambda s: s.student)]


@router.get("/status/{student}", response_model=StatusOut)
def get_student_status(student: str, db: Session = Depends(get_db)):
    return _status_out(pass_service.get_student_status(db, student))


@router.get("/board", response_model=BoardOut, summary="Roster with statuses and both waiting lines")
def get_board(db: Session = Depends(get_db)):
    board = pass_service.get_board(db)
    return BoardOut(
        students=[{"name": s["name"], "student_id": s["student_id"], "status": _status_out(s["status"])}
                  for s in board["students"]],
        queue=board["queue"],
    )


@router.get("/queue/{gender}", response_model=list[StatusOut], summary="Waiting line for one restroom")
def get_queue(gender: str, db: Session = Depends(get_db)):
    if gender.upper() not in ("G", "B"):
        raise HTTPException(status_code=404, detail=f"Unknown restroom '{gender}'")
    return [_status_out(s) for s in pass_service.get_queue(db, gender)]


@router.post("/passes/request", response_model=PassResultOut, summary="Send a student out (or into line)")
def request_pass(body: PassRequestIn, db: Session = Depends(get_db)):
    result = pass_service.request_access(db, body.student, body.gender, body.teacher)
    if not result.ok:
        _raise_rejection(result)
    return _result_out(result)


@router.post("/passes/return", response_model=PassResultOut, summary="Mark a student back")
def return_pass(body: PassReturnIn, db: Session = Depends(get_db)):
    result = pass_service.return_access(db, body.student, body.teacher, body.gender)
    if not result.ok:
        _raise_rejection(result)
    return _result_out(result)


@router.post("/passes/batch", response_model=BatchOut, summary="Apply several out/back updates")
def batch_passes(body: BatchIn, db: Session = Depends(get_db)):
    """All updates are validated before any is applied. Per-update rejections are reported, not raised."""
    outcome = pass_service.process_batch(db, [u.model_dump() for u in body.updates])
    if outcome.errors:
        raise HTTPException(status_code=422, detail=outcome.errors)
    return BatchOut(
        applied=sum(1 for r in outcome.results if r.ok),
        results=[_result_out(r) for r in outcome.results],
        errors=[],
    )


@router.get("/limits/{student}", response_model=LimitCheckOut, summary="Can this student go now?")
def get_usage_limit(student: str, db: Session = Depends(get_db)):
    check = pass_service.check_usage_limit(db, student)
    return LimitCheckOut(student=student, allowed=check.allowed, period=check.period,
                         reason=check.reason, message=check.message, trips=check.trips)


@router.get("/log/today", response_model=list[LogRecordOut], summary="Today's pass log rows")
def get_today_log(db: Session = Depends(get_db)):
    return [_record_out(r) for r in pass_service.today_records(db)]


@router.get("/log/{student}", response_model=StudentHistoryOut, summary="One student's rows today")
def get_student_log(student: str, db: Session = Depends(get_db)):
    history = pass_service.student_history(db, student)
    return StudentHistoryOut(
        student=history["student"],
        records=[_record_out(r) for r in history["records"]],
        analysis=history["analysis"],
    )
