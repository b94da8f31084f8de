"""
Unit Tests for the exam message channel
"""
from datetime import datetime
import pytest

from exam_monitor import db
from exam_monitor.errors import NotFoundError, ValidationError
from exam_monitor.models.communication import Communication, MessageRead
from exam_monitor.services.messaging import MessagingService


@pytest.fixture
def messaging():
    return MessagingService()


@pytest.fixture
def exam(make_exam, supervisor):
    return make_exam(supervisors=[supervisor])


class TestMessagingService:

    def test_message_is_trimmed_and_typed(self, messaging, exam, supervisor):
        sent = messaging.send_message(exam.id, supervisor.id, '  Collect phones  ', 'status_update')

        assert sent.message == 'Collect phones'
        assert sent.message_type == 'status_update'
        assert sent.is_read_by(supervisor.id)

    @pytest.mark.parametrize('text', [None, '   ', 7])
    def test_empty_message_rejected(self, messaging, exam, supervisor, text):
        with pytest.raises(ValidationError):
            messaging.send_message(exam.id, supervisor.id, text)
        assert Communication.query.count() == 0

    def test_list_orders_by_creation_time(self, messaging, exam, supervisor):
        late = Communication(exam_id=exam.id, sender_id=supervisor.id, message='late',
                             created_at=datetime(2025, 1, 10, 9, 30))
        early = Communication(exam_id=exam.id, sender_id=supervisor.id, message='early',
                              created_at=datetime(2025, 1, 10, 9, 5))
        db.session.add_all([late, early])
        db.session.commit()

        assert [m.message for m in messaging.list_messages(exam.id)] == ['early', 'late']

    def test_mark_read_unknown_user(self, messaging, exam, supervisor):
        sent = messaging.send_message(exam.id, supervisor.id, 'hello')

        with pytest.raises(NotFoundError):
            messaging.mark_read(exam.id, sent.id, 'nobody')

        assert MessageRead.query.count() == 1

    def test_mark_read_is_idempotent(self, messaging, exam, supervisor, lecturer):
        sent = messaging.send_message(exam.id, supervisor.id, 'hello')

        messaging.mark_read(exam.id, sent.id, lecturer.id)
        messaging.mark_read(exam.id, sent.id, lecturer.id)

        assert MessageRead.query.filter_by(communication_id=sent.id, user_id=lecturer.id).count() == 1
