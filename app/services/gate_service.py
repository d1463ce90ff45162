# app/services/gate_service.py
"""
Mutual exclusion per restroom lane (one lane per gender).
A lane is occupied iff some student's derived status is "out" for that gender.
No lock is stored; occupancy is recovered from the log on every call.
"""

from typing import Optional

from app.services.status_service import OUT, StudentStatus


def occupant(gender: str, statuses: dict[str, StudentStatus]) -> Optional[StudentStatus]:
    for status in statuses.values():
        if status.state == OUT and status.gender == gender:
            return status
    return None


def is_occupied(gender: str, statuses: dict[str, StudentStatus]) -> bool:
    return occupant(gender, statuses) is not None
