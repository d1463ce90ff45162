# app/exceptions.py
"""
Exception classes for the pass core.

Business rejections (validation, usage limit, occupied lane) are returned as
Rejection values by the services, not raised. Exceptions are kept for the two
cases that are not ordinary outcomes: a log row that cannot be parsed, and a
log store that cannot be reached.
"""


class RestroomPassException(Exception):
    """Base class for all pass core exceptions"""
    pass


class DataAnomaly(RestroomPassException):
    """A log row or time value that cannot be parsed. Caught by the log scan, never fatal."""
    def __init__(self, message, row_id=None):
        self.row_id = row_id
        super().__init__(message if row_id is None else f"Row {row_id}: {message}")


class StoreUnavailable(RestroomPassException):
    """The pass log could not be read or written. The only hard failure."""
    pass
