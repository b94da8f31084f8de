"""
Unit Tests for Attendance Ledger
"""
import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from exam_monitor import db
from exam_monitor.errors import ConflictError, NotFoundError, StateError, ValidationError
from exam_monitor.models.attendance import Attendance
from exam_monitor.services.attendance_ledger import AttendanceLedger


@pytest.fixture
def ledger(app):
    return AttendanceLedger()


@pytest.fixture
def exam(make_exam, students):
    return make_exam(status='active', students=students)


@pytest.fixture
def records(ledger, exam):
    return ledger.activate(exam.id)


class TestActivate:
    """Tests for the activation batch"""

    def test_numbers_roster_in_order(self, ledger, exam, students):
        records = ledger.activate(exam.id)

        assert [r.student_num_in_exam for r in records] == [1, 2, 3]
        assert [r.student_id for r in records] == [s.id for s in students]
        assert all(r.attendance_status == 'absent' for r in records)
        assert all(r.extra_time_minutes == 0 and not r.is_on_toilet for r in records)

    def test_second_activation_returns_same_records(self, ledger, exam):
        first = ledger.activate(exam.id)
        second = ledger.activate(exam.id)

        assert [r.id for r in first] == [r.id for r in second]
        assert Attendance.query.filter_by(exam_id=exam.id).count() == 3

    def test_losing_a_race_returns_winner_records(self, ledger, exam, monkeypatch):
        winner = ledger.activate(exam.id)
        real_records = ledger._records
        calls = {'n': 0}

        def stale_first_read(exam_id):
            calls['n'] += 1
            return [] if calls['n'] == 1 else real_records(exam_id)

        monkeypatch.setattr(ledger, '_records', stale_first_read)

        result = ledger.activate(exam.id)

        assert [r.id for r in result] == [r.id for r in winner]
        assert Attendance.query.filter_by(exam_id=exam.id).count() == 3

    def test_empty_roster(self, ledger, make_exam):
        assert ledger.activate(make_exam(status='active').id) == []

    def test_unknown_exam(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.activate('missing')


class TestSetStatus:
    """Status side effects"""

    def test_present_sets_start_time(self, ledger, records):
        record = ledger.set_status(records[1].id, 'present')
        assert record.attendance_status == 'present'
        assert record.start_time is not None

    def test_absent_clears_times(self, ledger, records):
        ledger.set_status(records[1].id, 'present')
        ledger.set_status(records[1].id, 'finished')

        record = ledger.set_status(records[1].id, 'absent')

        assert record.start_time is None
        assert record.end_time is None

    def test_finished_stamps_end_and_returns_to_room(self, ledger, records):
        ledger.set_status(records[0].id, 'present')
        ledger.toggle_toilet(records[0].id)

        record = ledger.set_status(records[0].id, 'finished')

        assert record.end_time is not None
        assert record.is_on_toilet is False

    def test_transferred_not_settable(self, ledger, records):
        with pytest.raises(ValidationError):
            ledger.set_status(records[0].id, 'transferred')

    def test_transferred_record_is_closed(self, ledger, records):
        db.session.execute(
            update(Attendance).where(Attendance.id == records[0].id).values(attendance_status='transferred')
        )
        db.session.commit()

        with pytest.raises(StateError):
            ledger.set_status(records[0].id, 'present')
        with pytest.raises(StateError):
            ledger.add_extra_time(records[0].id, 5)


class TestToilet:
    """At most one student out per exam"""

    def test_second_student_blocked(self, ledger, records):
        for r in records[:2]:
            ledger.set_status(r.id, 'present')
        ledger.toggle_toilet(records[0].id)

        with pytest.raises(ConflictError) as exc:
            ledger.toggle_toilet(records[1].id)

        assert exc.value.details['occupiedBy']['attendanceId'] == records[0].id
        assert Attendance.query.filter_by(exam_id=records[0].exam_id, is_on_toilet=True).count() == 1

    def test_other_exam_unaffected(self, ledger, records, make_exam, make_user):
        other_exam = make_exam(location='L9', status='active', students=[make_user('student')])
        other = ledger.activate(other_exam.id)[0]
        ledger.set_status(records[0].id, 'present')
        ledger.set_status(other.id, 'present')

        ledger.toggle_toilet(records[0].id)
        result = ledger.toggle_toilet(other.id)

        assert result.is_on_toilet is True

    def test_requires_present(self, ledger, records):
        with pytest.raises(StateError):
            ledger.toggle_toilet(records[0].id)

    def test_database_rejects_two_out(self, ledger, records):
        """The partial unique index backs up the conditional update"""
        db.session.execute(update(Attendance).where(Attendance.id == records[0].id).values(is_on_toilet=True))
        db.session.commit()

        with pytest.raises(IntegrityError):
            db.session.execute(update(Attendance).where(Attendance.id == records[1].id).values(is_on_toilet=True))
            db.session.commit()
        db.session.rollback()

    def test_explicit_false_when_in_room(self, ledger, records):
        record = ledger.toggle_toilet(records[0].id, desired=False)
        assert record.is_on_toilet is False


class TestExtraTime:
    """SQL-level increments"""

    def test_accumulates(self, ledger, records):
        ledger.add_extra_time(records[0].id, 10)
        record = ledger.add_extra_time(records[0].id, 5)
        assert record.extra_time_minutes == 15

    @pytest.mark.parametrize('minutes', [0, -3, 'x'])
    def test_rejects_non_positive(self, ledger, records, minutes):
        with pytest.raises(ValidationError):
            ledger.add_extra_time(records[0].id, minutes)


class TestAddStudent:
    """Late additions"""

    def test_next_seat_after_existing(self, ledger, records, exam, make_user):
        make_user('student', '200000050')

        _, record = ledger.add_student(exam.id, '200000050')

        assert record.student_num_in_exam == 4

    def test_finished_exam_rejected(self, ledger, make_exam, make_user):
        make_user('student', '200000051')
        with pytest.raises(StateError):
            ledger.add_student(make_exam(status='finished').id, '200000051')

    def test_next_seat_never_reuses(self, ledger, records, exam):
        db.session.execute(
            update(Attendance).where(Attendance.id == records[2].id).values(attendance_status='transferred')
        )
        db.session.commit()
        assert ledger.next_seat(exam.id) == 4
