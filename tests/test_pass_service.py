"""Unit tests for pass actions: the request/return state machine end to end on a real log."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from datetime import datetime, timedelta
from app.config import settings
from app.models.pass_log import PassLogEntry
from app.models.student import Student
from app.services import pass_service
from app.services.pass_service import process_batch, request_access, return_access
from app.services.status_service import AVAILABLE, OUT, WAITING

T0 = datetime(2026, 10, 19, 9, 0)


def at(minutes):
    return T0 + timedelta(minutes=minutes)


def request(db, student, minutes, gender="G"):
    return request_access(db, student, gender, "Mr. Test", now=at(minutes))


def give_back(db, student, minutes):
    return return_access(db, student, "Mr. Test", now=at(minutes))


def out_count(db, gender, minutes):
    statuses = pass_service.get_statuses(db, now=at(minutes))
    return sum(1 for s in statuses.values() if s.state == OUT and s.gender == gender)


class TestScenarios:
    def test_free_lane_then_busy_lane(self, db):
        first = request(db, "U1", 0)
        second = request(db, "U2", 1)

        assert first.ok and first.status.state == OUT and first.status.gender == "G"
        assert second.ok and second.status.state == WAITING
        assert second.status.position == 1

    def test_return_does_not_promote_next_in_line(self, db):
        request(db, "U1", 0)
        request(db, "U2", 1)

        back = give_back(db, "U1", 5)

        assert back.ok and back.status.state == AVAILABLE
        u2 = pass_service.get_student_status(db, "U2", now=at(5))
        assert u2.state == WAITING
        assert u2.position == 1

    def test_teacher_grants_waiting_student(self, db):
        request(db, "U1", 0)
        request(db, "U2", 1)
        give_back(db, "U1", 5)

        granted = request(db, "U2", 6)

        assert granted.ok and granted.status.state == OUT
        assert granted.status.gender == "G"
        assert db.query(PassLogEntry).count() == 2   # waiting row was promoted in place

    def test_round_trip_leaves_no_waiting_row(self, db):
        assert request(db, "Ana", 0).status.state == OUT
        assert give_back(db, "Ana", 4).status.state == AVAILABLE

        history = pass_service.student_history(db, "Ana", now=at(4))
        assert history["analysis"]["complete_entries"] == 1
        assert history["analysis"]["waiting_entries"] == 0


class TestPolicy:
    def test_second_trip_same_period_rejected_without_write(self, db):
        request(db, "Ana", 0)
        give_back(db, "Ana", 5)
        rows_before = db.query(PassLogEntry).count()

        again = request(db, "Ana", 30)

        assert not again.ok
        assert again.rejection.kind == "limit"
        assert again.rejection.reason == "already used in morning"
        assert again.rejection.period == "morning"
        assert db.query(PassLogEntry).count() == rows_before

    def test_afternoon_trip_allowed_after_morning_trip(self, db):
        request(db, "Ana", 0)
        give_back(db, "Ana", 5)
        afternoon = request(db, "Ana", 5 * 60)   # 2:00 PM
        assert afternoon.ok and afternoon.status.state == OUT

    def test_out_student_cannot_request_again(self, db):
        request(db, "Ana", 0)
        again = request(db, "Ana", 1)
        assert again.rejection.reason == "currently out"

    def test_waiting_student_not_granted_while_lane_busy(self, db):
        request(db, "U1", 0)
        request(db, "U2", 1)

        early = request(db, "U2", 2)

        assert not early.ok
        assert early.rejection.kind == "occupied"
        assert out_count(db, "G", 2) == 1

    def test_lanes_are_independent(self, db):
        assert request(db, "Ana", 0, "G").status.state == OUT
        assert request(db, "Ben", 1, "B").status.state == OUT

    def test_exclusivity_over_a_busy_morning(self, db):
        students = ["S1", "S2", "S3", "S4"]
        minute = 0
        for name in students:
            request(db, name, minute)
            minute += 1
            assert out_count(db, "G", minute) <= 1
        for name in students:
            give_back(db, name, minute)
            minute += 1
            request(db, name, minute)
            minute += 1
            assert out_count(db, "G", minute) <= 1

    def test_positions_stay_dense_after_out_of_order_grant(self, db):
        request(db, "U1", 0)
        request(db, "U2", 1)
        request(db, "U3", 2)
        request(db, "U4", 3)
        give_back(db, "U1", 10)

        assert request(db, "U3", 11).status.state == OUT

        queue = pass_service.get_queue(db, "G", now=at(11))
        assert [(s.student, s.position) for s in queue] == [("U2", 1), ("U4", 2)]


class TestInvalidActions:
    def test_validation_errors_write_nothing(self, db):
        assert request_access(db, "", "G", "Mr. Test", now=T0).rejection.reason == "Student name is required"
        assert request_access(db, "Ana", "G", " ", now=T0).rejection.reason == "Teacher name is required"
        assert request_access(db, "Ana", "X", "Mr. Test", now=T0).rejection.kind == "validation"
        assert request_access(db, "Ana", "", "Mr. Test", now=T0).rejection.kind == "validation"
        assert db.query(PassLogEntry).count() == 0

    def test_return_while_waiting_is_rejected(self, db):
        request(db, "U1", 0)
        request(db, "U2", 1)
        rows_before = db.query(PassLogEntry).count()

        result = give_back(db, "U2", 2)

        assert result.rejection.kind == "invalid_transition"
        assert db.query(PassLogEntry).count() == rows_before

    def test_return_without_pass_logs_back_only_row(self, db):
        result = return_access(db, "Ana", "Mr. Test", gender="G", now=T0)

        assert result.ok and result.status.state == AVAILABLE
        history = pass_service.student_history(db, "Ana", now=T0)
        assert history["analysis"]["back_entries"] == 1

    def test_double_submit_is_damped(self, db):
        return_access(db, "Ana", "Mr. Test", gender="G", now=T0)
        again = return_access(db, "Ana", "Mr. Test", gender="G", now=T0 + timedelta(seconds=2))

        assert again.rejection.kind == "duplicate"
        assert pass_service.student_history(db, "Ana", now=T0)["analysis"]["back_entries"] == 1

    def test_double_click_on_out_writes_one_row(self, db):
        request_access(db, "Ana", "G", "Mr. Test", now=T0)
        again = request_access(db, "Ana", "G", "Mr. Test", now=T0 + timedelta(seconds=2))

        assert not again.ok
        assert db.query(PassLogEntry).count() == 1


class TestSubmissionGuard:
    def test_grant_right_after_line_opens_is_allowed(self, db):
        request_access(db, "U1", "G", "Mr. Test", now=T0)
        request_access(db, "U2", "G", "Mr. Test", now=T0 + timedelta(seconds=1))
        return_access(db, "U1", "Mr. Test", now=T0 + timedelta(seconds=2))

        granted = request_access(db, "U2", "G", "Mr. Test", now=T0 + timedelta(seconds=3))

        assert granted.ok
        assert granted.status.state == OUT

    def test_retry_after_occupied_rejection_is_allowed(self, db):
        request_access(db, "U1", "G", "Mr. Test", now=T0)
        request_access(db, "U2", "G", "Mr. Test", now=T0 + timedelta(minutes=1))

        early = request_access(db, "U2", "G", "Mr. Test", now=T0 + timedelta(minutes=2))
        return_access(db, "U1", "Mr. Test", now=T0 + timedelta(minutes=2, seconds=1))
        retry = request_access(db, "U2", "G", "Mr. Test", now=T0 + timedelta(minutes=2, seconds=2))

        assert early.rejection.kind == "occupied"
        assert retry.ok and retry.status.state == OUT

    def test_window_expires(self):
        guard = pass_service.SubmissionGuard(window_seconds=5)
        guard.record("Ana", "back", AVAILABLE, T0)

        assert guard.is_duplicate("Ana", "back", AVAILABLE, T0 + timedelta(seconds=4))
        assert not guard.is_duplicate("Ana", "back", AVAILABLE, T0 + timedelta(seconds=5))
        assert not guard.is_duplicate("Ana", "back", OUT, T0 + timedelta(seconds=1))


class TestRosterLookup:
    def test_roster_id_is_written_to_log(self, db):
        db.add(Student(name="Ana", student_id="4471", is_active=1))
        db.commit()
        request(db, "Ana", 0)
        assert db.query(PassLogEntry).first().student_id == "4471"


class TestAutoPromote:
    def test_flag_moves_head_of_line_in_on_return(self, db, monkeypatch):
        monkeypatch.setattr(settings, "AUTO_PROMOTE_ON_RETURN", True)
        request(db, "U1", 0)
        request(db, "U2", 1)
        request(db, "U3", 2)

        give_back(db, "U1", 5)

        assert pass_service.get_student_status(db, "U2", now=at(5)).state == OUT
        u3 = pass_service.get_student_status(db, "U3", now=at(5))
        assert u3.state == WAITING and u3.position == 1


class TestBatch:
    def test_batch_applies_in_order(self, db):
        outcome = process_batch(db, [
            {"student": "U1", "action": "out", "teacher": "Mr. Test", "gender": "G"},
            {"student": "U2", "action": "out", "teacher": "Mr. Test", "gender": "G"},
        ], now=T0)

        assert outcome.errors == []
        assert [r.status.state for r in outcome.results] == [OUT, WAITING]

    def test_invalid_update_rejects_whole_batch(self, db):
        outcome = process_batch(db, [
            {"student": "U1", "action": "out", "teacher": "Mr. Test", "gender": "G"},
            {"student": "U2", "action": "hold", "teacher": "Mr. Test", "gender": "G"},
        ], now=T0)

        assert outcome.errors == ["Update 1: Action must be 'out' or 'back'"]
        assert db.query(PassLogEntry).count() == 0

    def test_batch_size_limit(self, db, monkeypatch):
        monkeypatch.setattr(settings, "BATCH_MAX_UPDATES", 1)
        outcome = process_batch(db, [
            {"student": "U1", "action": "out", "teacher": "Mr. Test", "gender": "G"},
            {"student": "U2", "action": "out", "teacher": "Mr. Test", "gender": "G"},
        ], now=T0)
        assert outcome.errors and not outcome.results

    def test_empty_batch(self, db):
        assert process_batch(db, [], now=T0).errors == ["Updates must be a non-empty list"]
