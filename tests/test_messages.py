"""
Tests for Exam Message Routes
"""
import pytest

from exam_monitor.models.audit_log import AuditLog
from exam_monitor.models.communication import Communication, MessageRead


@pytest.fixture
def exam(make_exam, supervisor, lecturer):
    return make_exam(supervisors=[supervisor], lecturers=[lecturer])


class TestSendMessage:
    """POST /api/exams/<id>/messages"""

    def test_sender_has_read_own_message(self, client, exam, supervisor):
        response = client.post(f'/api/exams/{exam.id}/messages', json={
            'senderId': supervisor.id,
            'message': 'Room is ready',
        })

        assert response.status_code == 201
        message = response.get_json()['message']
        assert message['messageType'] == 'message'
        assert message['sender'] == {'name': 'Supervisor One', 'idNumber': '300000001'}
        assert [r['userId'] for r in message['readBy']] == [supervisor.id]

    def test_send_is_audited(self, client, exam, supervisor):
        client.post(f'/api/exams/{exam.id}/messages', json={
            'senderId': supervisor.id,
            'message': 'Fire alarm',
            'messageType': 'emergency',
        })

        log = AuditLog.query.filter_by(action_type='MESSAGE_SENT').one()
        assert log.exam_id == exam.id
        assert log.user_id == supervisor.id

    @pytest.mark.parametrize('body', [{'message': 'hi'}, {'senderId': 'x'}, {'senderId': 'x', 'message': ''}])
    def test_missing_fields(self, client, exam, body):
        response = client.post(f'/api/exams/{exam.id}/messages', json=body)
        assert response.status_code == 400

    def test_unknown_message_type(self, client, exam, supervisor):
        response = client.post(f'/api/exams/{exam.id}/messages', json={
            'senderId': supervisor.id,
            'message': 'hi',
            'messageType': 'gossip',
        })
        assert response.status_code == 400

    def test_unknown_sender(self, client, exam):
        response = client.post(f'/api/exams/{exam.id}/messages', json={'senderId': 'nobody', 'message': 'hi'})
        assert response.status_code == 404

    def test_unknown_exam(self, client, supervisor):
        response = client.post('/api/exams/missing/messages', json={'senderId': supervisor.id, 'message': 'hi'})
        assert response.status_code == 404

    def test_array_body_rejected(self, client, exam, supervisor):
        response = client.post(f'/api/exams/{exam.id}/messages', json=[supervisor.id, 'hi'])
        assert response.status_code == 400


class TestListMessages:
    """GET /api/exams/<id>/messages"""

    def test_oldest_first(self, client, exam, supervisor, lecturer):
        for sender, text in [(supervisor, 'first'), (lecturer, 'second'), (supervisor, 'third')]:
            client.post(f'/api/exams/{exam.id}/messages', json={'senderId': sender.id, 'message': text})

        response = client.get(f'/api/exams/{exam.id}/messages')

        assert response.status_code == 200
        messages = response.get_json()['messages']
        assert [m['message'] for m in messages] == ['first', 'second', 'third']
        assert messages[1]['sender']['name'] == 'Lecturer One'

    def test_other_exam_messages_hidden(self, client, exam, make_exam, supervisor):
        other = make_exam(location='L2')
        client.post(f'/api/exams/{other.id}/messages', json={'senderId': supervisor.id, 'message': 'elsewhere'})

        response = client.get(f'/api/exams/{exam.id}/messages')

        assert response.get_json()['messages'] == []

    def test_unknown_exam(self, client):
        response = client.get('/api/exams/missing/messages')
        assert response.status_code == 404


class TestMarkRead:
    """PATCH /api/exams/<id>/messages/<message_id>/read"""

    @pytest.fixture
    def message(self, client, exam, supervisor):
        return client.post(f'/api/exams/{exam.id}/messages', json={
            'senderId': supervisor.id,
            'message': 'Please come to room L1',
        }).get_json()['message']

    def test_adds_receipt_once(self, client, exam, message, supervisor, lecturer):
        url = f"/api/exams/{exam.id}/messages/{message['id']}/read"

        first = client.patch(url, json={'userId': lecturer.id})
        second = client.patch(url, json={'userId': lecturer.id})

        assert first.status_code == 200
        assert first.get_json()['message'] == 'Message marked as read'
        readers = [r['userId'] for r in second.get_json()['data']['readBy']]
        assert readers == [supervisor.id, lecturer.id]

    def test_sender_reading_again_is_noop(self, client, exam, message, supervisor):
        response = client.patch(
            f"/api/exams/{exam.id}/messages/{message['id']}/read", json={'userId': supervisor.id})

        assert len(response.get_json()['data']['readBy']) == 1

    def test_requires_user_id(self, client, exam, message):
        response = client.patch(f"/api/exams/{exam.id}/messages/{message['id']}/read", json={})
        assert response.status_code == 400

    def test_unknown_message(self, client, exam, lecturer):
        response = client.patch(f'/api/exams/{exam.id}/messages/missing/read', json={'userId': lecturer.id})
        assert response.status_code == 404

    def test_message_of_other_exam(self, client, message, make_exam, lecturer):
        other = make_exam(location='L2')

        response = client.patch(
            f"/api/exams/{other.id}/messages/{message['id']}/read", json={'userId': lecturer.id})

        assert response.status_code == 404

    def test_deleting_exam_removes_messages(self, client, exam, message):
        exam_id = exam.id

        response = client.delete(f'/api/exams/{exam_id}')

        assert response.status_code == 200
        assert Communication.query.filter_by(exam_id=exam_id).count() == 0
        assert MessageRead.query.count() == 0
        assert client.get(f'/api/exams/{exam_id}/messages').status_code == 404
