"""
Pytest Configuration for Exam Monitoring Tests
"""
from datetime import date, time
import pytest

from exam_monitor import create_app, db
from exam_monitor.models.user import User
from exam_monitor.models.exam import Exam


@pytest.fixture(scope='function')
def app():
    """Create application with a fresh in-memory database per test"""
    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': 'test-secret-key',
        'EXAM_TIMEZONE': 'Asia/Jerusalem',
        'EXAM_WINDOW_MINUTES': 30,
    }

    app = create_app(test_config)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Database session for testing"""
    yield db.session
    db.session.rollback()


@pytest.fixture
def make_user(app):
    """Factory: make_user('student', '100000001', 'Dana')"""
    counter = {'n': 0}

    def _make(role='student', id_number=None, name=None):
        counter['n'] += 1
        user = User(
            id_number=id_number or f"9{counter['n']:08d}",
            name=name or f"{role.title()} {counter['n']}",
            role=role,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_exam(app):
    """Factory for exams inserted directly, bypassing the catalog"""

    def _make(
        location='L1',
        day=date(2025, 1, 10),
        start=time(9, 0),
        end=time(11, 0),
        status='scheduled',
        course_code=101,
        course_name='Algorithms',
        supervisors=(),
        lecturers=(),
        students=(),
    ):
        exam = Exam(
            course_name=course_name,
            course_code=course_code,
            date=day,
            start_time=start,
            end_time=end,
            location=location,
            duration_minutes=(end.hour * 60 + end.minute) - (start.hour * 60 + start.minute),
            status=status,
        )
        exam.set_members('supervisor', [u.id for u in supervisors])
        exam.set_members('lecturer', [u.id for u in lecturers])
        exam.set_members('student', [u.id for u in students])
        db.session.add(exam)
        db.session.commit()
        return exam

    return _make


@pytest.fixture
def students(make_user):
    """Three registered students"""
    return [make_user('student', f'20000000{i}', f'Student {i}') for i in range(1, 4)]


@pytest.fixture
def supervisor(make_user):
    return make_user('supervisor', '300000001', 'Supervisor One')


@pytest.fixture
def lecturer(make_user):
    return make_user('lecturer', '400000001', 'Lecturer One')
