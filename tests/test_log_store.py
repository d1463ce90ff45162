"""Unit tests for the pass log store: today's scan, bad rows, store failures."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock, patch
from datetime import date
from sqlalchemy.exc import SQLAlchemyError
from app.exceptions import StoreUnavailable
from app.models.pass_log import PassLogEntry
from app.services.log_store import EventLogStore
from app.services.status_service import OUT, derive_statuses

TODAY = date(2026, 10, 19)


def add_row(db, student, log_date="10/19/2026", gender="G", out_time="", back_time="", hold_notice=""):
    db.add(PassLogEntry(log_date=log_date, student_name=student, student_id="", gender=gender,
                        teacher="Mr. Test", out_time=out_time, back_time=back_time,
                        hold_notice=hold_notice))
    db.commit()


class TestScanToday:
    def test_only_todays_rows_in_append_order(self, db):
        add_row(db, "Old", log_date="10/18/2026", out_time="9:00 AM")
        add_row(db, "Ana", out_time="9:00 AM")
        add_row(db, "Ben", gender="B", out_time="9:01 AM")

        records = EventLogStore(db).scan_today(TODAY)
        assert [r.student for r in records] == ["Ana", "Ben"]
        assert records[0].row_id < records[1].row_id

    def test_corrupted_date_row_is_skipped(self, db):
        """A row with an unparseable date is left out; everyone else still derives."""
        add_row(db, "U1", out_time="9:00 AM")
        add_row(db, "U4", log_date="##corrupt##", out_time="9:02 AM")
        add_row(db, "U2", gender="B", out_time="9:03 AM")

        statuses = derive_statuses(EventLogStore(db).scan_today(TODAY))
        assert "U4" not in statuses
        assert statuses["U1"].state == OUT
        assert statuses["U2"].state == OUT

    def test_unparseable_time_row_is_skipped(self, db):
        add_row(db, "Ana", out_time="banana")
        add_row(db, "Ben", out_time="9:05 AM")
        records = EventLogStore(db).scan_today(TODAY)
        assert [r.student for r in records] == ["Ben"]

    def test_rows_without_name_are_ignored(self, db):
        add_row(db, "", out_time="9:00 AM")
        add_row(db, None, out_time="9:00 AM")
        assert EventLogStore(db).scan_today(TODAY) == []

    def test_iso_dates_written_by_other_tools_are_read(self, db):
        add_row(db, "Ana", log_date="2026-10-19", out_time="09:00")
        records = EventLogStore(db).scan_today(TODAY)
        assert records[0].out_time.label == "9:00 AM"


class TestWrites:
    def test_append_and_update(self, db):
        store = EventLogStore(db)
        entry = store.append("Ana", "123", "G", "Mr. Test", out_time="9:00 AM", today=TODAY)
        store.update_field(entry.id, "back_time", "9:07 AM")

        record = store.scan_today(TODAY)[0]
        assert record.is_complete
        assert record.student_id == "123"
        assert entry.log_date == "10/19/2026"

    def test_append_refuses_grant_and_hold_together(self, db):
        with pytest.raises(ValueError):
            EventLogStore(db).append("Ana", "", "G", "Mr. Test", out_time="9:00 AM",
                                     hold_notice="Waiting in line. Position 1.")

    def test_update_refuses_identity_fields(self, db):
        with pytest.raises(ValueError):
            EventLogStore(db).update_field(1, "student_name", "Someone else")


class TestStoreUnavailable:
    def test_scan_failure_raises_store_unavailable(self):
        db = MagicMock()
        db.query.side_effect = SQLAlchemyError("database is locked")
        with pytest.raises(StoreUnavailable):
            EventLogStore(db).scan_today(TODAY)

    def test_append_failure_rolls_back(self):
        db = MagicMock()
        db.commit.side_effect = SQLAlchemyError("disk I/O error")
        with pytest.raises(StoreUnavailable):
            EventLogStore(db).append("Ana", "", "G", "Mr. Test", out_time="9:00 AM")
        db.rollback.assert_called_once()


class TestAtomicUpdates:
    def test_update_fields_writes_all_cells_in_one_commit(self, db):
        store = EventLogStore(db)
        entry = store.append("Ana", "", "G", "Mr. Test", hold_notice="Waiting in line. Position 1.", today=TODAY)

        with patch.object(db, "commit", wraps=db.commit) as commit:
            store.update_fields(entry.id, out_time="9:15 AM", hold_notice="")

        commit.assert_called_once()
        record = store.scan_today(TODAY)[0]
        assert record.is_open and record.hold_notice == ""

    def test_update_fields_refuses_unknown_cells(self, db):
        with pytest.raises(ValueError):
            EventLogStore(db).update_fields(1, out_time="9:15 AM", teacher="Someone else")


class TestBoundedScan:
    def test_today_rows_span_several_batches(self, db, monkeypatch):
        monkeypatch.setattr("app.services.log_store.SCAN_BATCH_SIZE", 2)
        for i in range(5):
            add_row(db, f"S{i}", out_time="9:00 AM")

        records = EventLogStore(db).scan_today(TODAY)
        assert [r.student for r in records] == ["S0", "S1", "S2", "S3", "S4"]

    def test_earlier_days_are_not_read(self, db, monkeypatch):
        monkeypatch.setattr("app.services.log_store.SCAN_BATCH_SIZE", 2)
        add_row(db, "Ghost", log_date="##corrupt##", out_time="9:00 AM")
        for _ in range(4):
            add_row(db, "Old", log_date="10/18/2026", out_time="9:00 AM")
        add_row(db, "Ana", out_time="9:00 AM")

        with patch("app.services.log_store.logger") as logger:
            records = EventLogStore(db).scan_today(TODAY)

        assert [r.student for r in records] == ["Ana"]
        logger.warning.assert_not_called()

    def test_no_rows_today(self, db):
        add_row(db, "Old", log_date="10/18/2026", out_time="9:00 AM")
        assert EventLogStore(db).scan_today(TODAY) == []
