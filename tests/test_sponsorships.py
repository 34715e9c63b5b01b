import pytest

from schoolms.extensions import db
from schoolms.models import Student


@pytest.fixture
def student(admit):
    return admit('Amina', needsSponsorship=True).get_json()['student']


@pytest.fixture
def sponsorship(client, auth_headers, student):
    response = client.post('/api/sponsorships', json={
        'studentId': student['id'],
        'sponsorName': 'Jane Doe',
        'sponsorCountry': 'Kenya',
        'amount': '1200000',
        'duration': 6,
    }, headers=auth_headers)
    assert response.status_code == 201
    return response.get_json()


def sponsorship_status_of(student):
    return db.session.get(Student, student['id']).sponsorship_status


def test_create_puts_student_under_review(sponsorship, student):
    assert sponsorship['status'] == 'pending'
    assert sponsorship['amount'] == 1200000.0
    assert sponsorship['sponsorCountry'] == 'Kenya'
    assert sponsorship_status_of(student) == 'under-sponsorship-review'


def test_create_validation(client, auth_headers, student):
    assert client.post('/api/sponsorships', json={'studentId': student['id']},
                       headers=auth_headers).status_code == 400
    assert client.post('/api/sponsorships', json={'studentId': 999, 'sponsorName': 'X', 'amount': 10},
                       headers=auth_headers).status_code == 404


def test_approve(client, auth_headers, sponsorship):
    body = client.post(f"/api/sponsorships/{sponsorship['id']}/approve", headers=auth_headers).get_json()
    assert body['status'] == 'coordinator-approved'


def test_reject_makes_student_available_again(client, auth_headers, sponsorship, student):
    body = client.post(f"/api/sponsorships/{sponsorship['id']}/reject", headers=auth_headers).get_json()
    assert body['status'] == 'rejected'
    assert sponsorship_status_of(student) == 'available-for-sponsors'


def test_approve_sponsored(client, auth_headers, sponsorship, student):
    body = client.post(f"/api/sponsorships/{sponsorship['id']}/approve-sponsored",
                       headers=auth_headers).get_json()
    assert body['status'] == 'sponsored'
    assert sponsorship_status_of(student) == 'sponsored'


def test_complete(client, auth_headers, sponsorship):
    body = client.post(f"/api/sponsorships/{sponsorship['id']}/complete", headers=auth_headers).get_json()
    assert body['status'] == 'completed'


def test_unknown_sponsorship(client, auth_headers):
    assert client.post('/api/sponsorships/999/approve', headers=auth_headers).status_code == 404
    assert client.get('/api/sponsorships/999', headers=auth_headers).status_code == 404


def test_update_and_delete(client, auth_headers, sponsorship):
    url = f"/api/sponsorships/{sponsorship['id']}"
    updated = client.put(url, json={'amount': 900000, 'description': 'Term 1 only'},
                         headers=auth_headers).get_json()
    assert updated['amount'] == 900000.0
    assert updated['description'] == 'Term 1 only'

    assert client.delete(url, headers=auth_headers).status_code == 200
    assert client.get('/api/sponsorships', headers=auth_headers).get_json() == []


def test_student_status_shortcuts(client, auth_headers, student):
    available = client.post(f"/api/sponsorships/student/{student['id']}/make-available",
                            headers=auth_headers).get_json()
    assert available['student']['sponsorshipStatus'] == 'available-for-sponsors'

    eligible = client.post(f"/api/sponsorships/student/{student['id']}/make-eligible",
                           headers=auth_headers).get_json()
    assert eligible['student']['sponsorshipStatus'] == 'eligible'
