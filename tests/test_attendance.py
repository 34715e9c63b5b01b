import pytest

from schoolms.models import Attendance


@pytest.fixture
def mark(client, auth_headers):
    def _mark(student_id, status='present', date='2026-03-02', **extra):
        payload = {
            'studentId': student_id,
            'date': date,
            'status': status,
            'teacherId': 7,
            'teacherName': 'Mr. Okello',
        }
        payload.update(extra)
        return client.post('/api/attendance', json=payload, headers=auth_headers)
    return _mark


def test_requires_authentication(client):
    assert client.get('/api/attendance').status_code == 401


def test_mark_attendance(mark):
    response = mark(1)
    assert response.status_code == 201
    record = response.get_json()
    assert record['studentId'] == '1'
    assert record['teacherId'] == '7'
    assert record['date'] == '2026-03-02'
    assert record['time']


def test_second_mark_same_day_updates(mark):
    first = mark(1, 'present').get_json()
    second = mark(1, 'late', remarks='Bus broke down').get_json()
    assert second['id'] == first['id']
    assert second['status'] == 'late'
    assert Attendance.query.count() == 1


def test_missing_fields(client, auth_headers):
    response = client.post('/api/attendance', json={'studentId': 1}, headers=auth_headers)
    assert response.status_code == 400


def test_invalid_status(mark):
    assert mark(1, 'sleeping').status_code == 400


def test_queries(client, auth_headers, mark):
    mark(1, date='2026-03-02')
    mark(1, date='2026-03-03')
    mark(2, date='2026-03-03')

    assert len(client.get('/api/attendance', headers=auth_headers).get_json()) == 3
    assert len(client.get('/api/attendance/student/1', headers=auth_headers).get_json()) == 2
    assert len(client.get('/api/attendance/date/2026-03-03', headers=auth_headers).get_json()) == 2
    assert client.get('/api/attendance/date/yesterday', headers=auth_headers).status_code == 400


def test_update(client, auth_headers, mark):
    record = mark(1).get_json()
    response = client.put(f"/api/attendance/{record['id']}", json={'status': 'absent', 'remarks': 'Sick'},
                          headers=auth_headers)
    assert response.status_code == 200
    assert response.get_json()['status'] == 'absent'

    assert client.put('/api/attendance/abc', json={}, headers=auth_headers).status_code == 400
    assert client.put('/api/attendance/999', json={}, headers=auth_headers).status_code == 404


def test_delete(client, auth_headers, mark):
    record = mark(1).get_json()
    assert client.delete(f"/api/attendance/{record['id']}", headers=auth_headers).status_code == 200
    assert client.delete(f"/api/attendance/{record['id']}", headers=auth_headers).status_code == 404


def test_ensure_daily(client, auth_headers, admit, mark):
    first = admit('Amina').get_json()['student']
    admit('Brian')
    mark(first['id'], date='2026-03-02')

    body = client.post('/api/attendance/ensure-daily', json={'date': '2026-03-02'},
                       headers=auth_headers).get_json()
    assert body['created'] == 1
    assert body['totalStudents'] == 2
    assert Attendance.query.filter_by(status='not_marked').count() == 1

    again = client.post('/api/attendance/ensure-daily', json={'date': '2026-03-02'},
                        headers=auth_headers).get_json()
    assert again['created'] == 0
