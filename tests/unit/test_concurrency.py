"""
Concurrency Tests - parallel requests against a file-backed SQLite database

Each worker runs in its own thread and application context, so it gets its
own session and connection, and all workers are released together.
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, time
import pytest

from exam_monitor import create_app, db
from exam_monitor.errors import ConflictError, ExamMonitorError
from exam_monitor.models.attendance import Attendance
from exam_monitor.models.exam import Exam
from exam_monitor.models.user import User
from exam_monitor.services.attendance_ledger import get_attendance_ledger
from exam_monitor.services.exam_catalog import get_exam_catalog


@pytest.fixture
def file_app(tmp_path):
    """Application on an on-disk database shared by all worker threads"""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'exam_monitor.db'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'check_same_thread': False, 'timeout': 30}},
        'EXAM_TIMEZONE': 'Asia/Jerusalem',
        'EXAM_WINDOW_MINUTES': 30,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def run_together(app, calls):
    """Run every call in its own thread; returns None or the raised ExamMonitorError per call"""
    barrier = threading.Barrier(len(calls))

    def worker(call):
        with app.app_context():
            barrier.wait()
            try:
                call()
            except ExamMonitorError as e:
                return e
            return None

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(worker, calls))


def active_exam_with_students(count):
    """An active exam in L1 with `count` students, all marked present"""
    students = [User(id_number=f'2000000{i:02d}', name=f'Student {i}', role='student') for i in range(count)]
    db.session.add_all(students)
    exam = Exam(
        course_name='Algorithms',
        course_code=101,
        date=date(2025, 1, 10),
        start_time=time(9, 0),
        end_time=time(11, 0),
        location='L1',
        duration_minutes=120,
    )
    db.session.add(exam)
    db.session.flush()
    exam.set_members('student', [s.id for s in students])
    db.session.commit()

    _, records = get_exam_catalog().activate_exam(exam.id)
    ledger = get_attendance_ledger()
    for record in records:
        ledger.set_status(record.id, 'present')
    return exam.id, [r.id for r in records]


class TestConcurrentToilet:

    def test_at_most_one_student_out(self, file_app):
        exam_id, record_ids = active_exam_with_students(8)
        ledger = get_attendance_ledger()

        results = run_together(file_app, [
            lambda record_id=record_id: ledger.toggle_toilet(record_id) for record_id in record_ids
        ])

        assert results.count(None) == 1
        assert all(isinstance(r, ConflictError) for r in results if r is not None)
        db.session.expire_all()
        assert Attendance.query.filter_by(exam_id=exam_id, is_on_toilet=True).count() == 1


class TestConcurrentExtraTime:

    @pytest.mark.parametrize('grants', [(10, 5), (5,) * 6])
    def test_no_lost_increments(self, file_app, grants):
        _, record_ids = active_exam_with_students(1)
        ledger = get_attendance_ledger()

        results = run_together(file_app, [
            lambda minutes=minutes: ledger.add_extra_time(record_ids[0], minutes) for minutes in grants
        ])

        assert results == [None] * len(grants)
        db.session.expire_all()
        assert db.session.get(Attendance, record_ids[0]).extra_time_minutes == sum(grants)


class TestConcurrentScheduling:

    def test_overlapping_creates_admit_one(self, file_app):
        catalog = get_exam_catalog()
        # Every slot covers 10:00-10:30
        slots = [('09:00', '11:00'), ('09:30', '10:30'), ('10:00', '12:00'),
                 ('08:00', '10:45'), ('09:59', '10:31'), ('10:00', '10:30')]

        results = run_together(file_app, [
            lambda start=start, end=end: catalog.create_exam({
                'courseName': 'Databases',
                'courseCode': 202,
                'date': '2025-01-10',
                'startTime': start,
                'endTime': end,
                'location': 'L1',
            })
            for start, end in slots
        ])

        assert results.count(None) == 1
        assert all(isinstance(r, ConflictError) for r in results if r is not None)
        assert Exam.query.count() == 1
