import threading
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO

from openpyxl import load_workbook

from schoolms.app import create_app
from schoolms.config import TestingConfig
from schoolms.exceptions import AccessNumberConflict
from schoolms.extensions import db
from schoolms.models import Student, DroppedAccessNumber, FeeStructure, User
from schoolms.routes import students as students_routes
from schoolms.utils.tokens import create_access_token


class TestAdmission:
    def test_requires_authentication(self, client):
        response = client.post('/api/students', json={'name': 'Amina'})
        assert response.status_code == 401

    def test_admits_student(self, admit):
        response = admit('Amina Nakato', residenceType='Day')
        assert response.status_code == 201
        body = response.get_json()
        assert body['success'] is True
        assert body['student']['accessNumber'] == 'AA01'
        assert body['student']['admissionId'][-3:] == 'A01'
        assert body['student']['status'] == 'active'
        assert body['accessNumberSource'] == 'generated'

    def test_admissions_get_distinct_numbers(self, admit):
        numbers = [admit(f'Student {i}').get_json()['student']['accessNumber'] for i in range(5)]
        assert numbers == ['AA01', 'AA02', 'AA03', 'AA04', 'AA05']
        assert len(set(numbers)) == len(numbers)

    def test_streams_are_numbered_independently(self, admit):
        assert admit('Amina', stream='A').get_json()['student']['accessNumber'] == 'AA01'
        assert admit('Brian', stream='B').get_json()['student']['accessNumber'] == 'AB01'

    def test_validation(self, admit):
        assert admit('').status_code == 400
        assert admit('Amina', age=0).status_code == 400
        assert admit('Amina', class_name='').status_code == 400
        response = admit('Amina', stream='')
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Stream is required'

    def test_duplicate_is_rejected(self, admit):
        admit('Amina Nakato')
        response = admit('amina nakato', parent={'name': 'Parent of Amina Nakato'})
        assert response.status_code == 400
        body = response.get_json()
        assert body['error'] == 'DUPLICATE_STUDENT_DETECTED'
        assert body['preventionLevel'] == 'EXACT_MATCH'
        assert body['existingStudent']['accessNumber'] == 'AA01'

    def test_same_name_with_other_parent_is_similar(self, admit):
        admit('Amina Nakato')
        response = admit('Amina Nakato', parent={'name': 'Someone Else'})
        assert response.status_code == 400
        assert response.get_json()['preventionLevel'] == 'SIMILAR_MATCH'

    def test_requested_number_already_held(self, admit):
        admit('Amina')
        response = admit('Brian', accessNumber='AA01')
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Access number already exists'

    def test_existing_admission_id_is_rejected(self, admit):
        first = admit('Amina').get_json()['student']
        response = admit('Brian', admissionId=first['admissionId'])
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Admission ID already exists'

    def test_overseer_pupil_gets_placeholders(self, admit):
        response = admit('Pupil One', stream=None, admittedBy='overseer')
        assert response.status_code == 201
        student = response.get_json()['student']
        assert student['accessNumber'].startswith('None-')
        assert student['admissionId'].startswith('None-')
        assert student['sponsorshipStatus'] == 'pending'

    def test_conflict_is_retryable(self, admit, monkeypatch):
        def conflicting(*args, **kwargs):
            raise AccessNumberConflict(accessNumber='AA01')
        monkeypatch.setattr(students_routes, 'allocate_access_number', conflicting)

        response = admit('Amina')
        assert response.status_code == 500
        body = response.get_json()
        assert body['retryable'] is True
        assert body['message'] == 'Access number conflict detected, please try again'
        assert Student.query.count() == 0

    def test_boarding_fees(self, admit):
        db.session.add(FeeStructure(class_name='Senior 1', fee_name='Tuition', amount=600000))
        db.session.add(FeeStructure(class_name='Senior 1', fee_name='Boarding Fee', amount=450000))
        db.session.commit()

        day = admit('Amina', residenceType='Day').get_json()
        boarder = admit('Brian', residenceType='Boarding').get_json()
        assert day['student']['totalFees'] == 600000
        assert boarder['student']['totalFees'] == 1050000
        assert boarder['student']['feeBalance'] == 1050000
        assert boarder['fees']['boardingFee'] == 450000


class TestRecycling:
    def test_deleting_highest_does_not_drop(self, client, admit, auth_headers):
        admit('Amina')
        last = admit('Brian').get_json()['student']

        response = client.delete(f"/api/students/{last['id']}", headers=auth_headers)
        assert response.status_code == 200
        body = response.get_json()
        assert body['isHighestNumbered'] is True
        assert body['droppedAccessNumber'] is None
        assert DroppedAccessNumber.query.count() == 0

        assert admit('Chris').get_json()['student']['accessNumber'] == 'AA02'

    def test_deleting_other_student_drops_number(self, client, admit, auth_headers):
        first = admit('Amina').get_json()['student']
        admit('Brian')

        response = client.delete(f"/api/students/{first['id']}", headers=auth_headers)
        body = response.get_json()
        assert body['isHighestNumbered'] is False
        assert body['droppedAccessNumber'] == 'AA01'
        assert [d.access_number for d in DroppedAccessNumber.query.all()] == ['AA01']

        reused = admit('Chris').get_json()
        assert reused['student']['accessNumber'] == 'AA01'
        assert reused['accessNumberSource'] == 'dropped'
        assert DroppedAccessNumber.query.count() == 0

    def test_readmission_removes_dropped_number(self, client, admit, auth_headers):
        first = admit('Amina').get_json()['student']
        admit('Brian')
        client.patch(f"/api/students/{first['id']}/flag", json={'status': 'left'}, headers=auth_headers)
        assert DroppedAccessNumber.query.filter_by(access_number='AA01').count() == 1

        response = admit('Amina', parent={'name': 'New Guardian'},
                         isReAdmission=True, originalAccessNumber='AA01')
        assert response.status_code == 201
        assert response.get_json()['student']['accessNumber'] == 'AA01'
        assert DroppedAccessNumber.query.filter_by(access_number='AA01').count() == 0

    def test_overseer_student_cannot_be_deleted(self, client, admit, auth_headers):
        pupil = admit('Pupil One', stream=None, admittedBy='overseer').get_json()['student']
        response = client.delete(f"/api/students/{pupil['id']}", headers=auth_headers)
        assert response.status_code == 403

    def test_delete_missing_student(self, client, auth_headers):
        assert client.delete('/api/students/999', headers=auth_headers).status_code == 404

    def test_flag_defaults_to_left(self, client, admit, auth_headers):
        student = admit('Amina').get_json()['student']
        response = client.patch(f"/api/students/{student['id']}/flag",
                                json={'comment': 'Moved away'}, headers=auth_headers)
        body = response.get_json()
        assert body['student']['status'] == 'left'
        assert body['student']['flagComment'] == 'Moved away'

    def test_readmitted_flag_keeps_number_out_of_pool(self, client, admit, auth_headers):
        first = admit('Amina').get_json()['student']
        admit('Brian')
        client.patch(f"/api/students/{first['id']}/flag", json={'status': 're-admitted'}, headers=auth_headers)
        assert DroppedAccessNumber.query.count() == 0

    def test_invalid_flag_status(self, client, admit, auth_headers):
        student = admit('Amina').get_json()['student']
        response = client.patch(f"/api/students/{student['id']}/flag",
                                json={'status': 'vanished'}, headers=auth_headers)
        assert response.status_code == 400

    def test_dropped_number_endpoints(self, client, admit, auth_headers):
        first = admit('Amina').get_json()['student']
        admit('Brian')
        client.delete(f"/api/students/{first['id']}", headers=auth_headers)

        listing = client.get('/api/students/dropped-access-numbers', headers=auth_headers).get_json()
        assert [d['accessNumber'] for d in listing['droppedAccessNumbers']] == ['AA01']

        stream = client.get('/api/students/dropped-access-numbers/Senior%201/A', headers=auth_headers).get_json()
        assert stream['accessNumbers'] == ['AA01']

        assert client.delete('/api/students/dropped-access-numbers/AA01',
                             headers=auth_headers).status_code == 200
        assert client.delete('/api/students/dropped-access-numbers/AA01',
                             headers=auth_headers).status_code == 404


class TestOverseerApproval:
    def test_approval_assigns_real_numbers(self, client, admit, auth_headers):
        admit('Amina')
        pupil = admit('Pupil One', stream=None, admittedBy='overseer').get_json()['student']

        response = client.post(f"/api/students/{pupil['id']}/approve-overseer-admission",
                               json={'stream': 'A'}, headers=auth_headers)
        assert response.status_code == 200
        student = response.get_json()['student']
        assert student['accessNumber'] == 'AA02'
        assert not student['admissionId'].startswith('None-')
        assert student['sponsorshipStatus'] == 'approved'

    def test_approval_needs_a_stream(self, client, admit, auth_headers):
        pupil = admit('Pupil One', stream=None, admittedBy='overseer').get_json()['student']
        response = client.post(f"/api/students/{pupil['id']}/approve-overseer-admission",
                               json={}, headers=auth_headers)
        assert response.status_code == 400

    def test_approval_rejects_taken_number(self, client, admit, auth_headers):
        admit('Amina')
        pupil = admit('Pupil One', stream=None, admittedBy='overseer').get_json()['student']
        response = client.post(f"/api/students/{pupil['id']}/approve-overseer-admission",
                               json={'stream': 'A', 'accessNumber': 'AA01'}, headers=auth_headers)
        assert response.status_code == 400


class TestStudentRecord:
    def test_get_and_list(self, client, admit, auth_headers):
        student = admit('Amina').get_json()['student']
        assert client.get(f"/api/students/{student['id']}", headers=auth_headers).status_code == 200
        assert client.get('/api/students/999', headers=auth_headers).status_code == 404
        assert len(client.get('/api/students', headers=auth_headers).get_json()['students']) == 1

    def test_enrolled_excludes_flagged(self, client, admit, auth_headers):
        first = admit('Amina').get_json()['student']
        admit('Brian')
        client.patch(f"/api/students/{first['id']}/flag", json={}, headers=auth_headers)
        enrolled = client.get('/api/students/enrolled', headers=auth_headers).get_json()['students']
        assert [s['name'] for s in enrolled] == ['Brian']

    def test_update_recomputes_fees_on_residence_change(self, client, admit, auth_headers, app):
        student = admit('Amina', residenceType='Day').get_json()['student']
        assert student['totalFees'] == 0

        response = client.put(f"/api/students/{student['id']}",
                              json={'residenceType': 'Boarding', 'phone': '0700000000'}, headers=auth_headers)
        updated = response.get_json()['student']
        assert updated['residenceType'] == 'Boarding'
        assert updated['totalFees'] == app.config['BOARDING_FEE']
        assert updated['phone'] == '0700000000'

    def test_fee_balance(self, client, admit, auth_headers):
        student = admit('Amina', residenceType='Boarding').get_json()['student']
        record = db.session.get(Student, student['id'])
        record.fees_paid = 200000
        db.session.commit()

        body = client.get(f"/api/students/{student['id']}/fee-balance", headers=auth_headers).get_json()
        assert body['totalFees'] == 500000
        assert body['balance'] == 300000
        assert body['isFullyPaid'] is False

    def test_conduct_notes(self, client, admit, auth_headers):
        student = admit('Amina').get_json()['student']
        url = f"/api/students/{student['id']}/conduct-notes"

        response = client.post(url, json={'content': 'Won the debate', 'type': 'achievement',
                                          'author': 'Mr. Okello'}, headers=auth_headers)
        assert response.status_code == 200
        notes = response.get_json()['student']['conductNotes']
        assert len(notes) == 1
        assert notes[0]['type'] == 'achievement'

        assert client.post(url, json={'content': 'x', 'type': 'rumour', 'author': 'A'},
                           headers=auth_headers).status_code == 400
        assert client.post(url, json={'content': 'x' * 1001, 'type': 'warning', 'author': 'A'},
                           headers=auth_headers).status_code == 400

    def test_export(self, client, admit, auth_headers):
        admit('Amina')
        response = client.get('/api/students/export', headers=auth_headers)
        assert response.status_code == 200
        sheet = load_workbook(BytesIO(response.data)).active
        assert sheet.cell(row=1, column=2).value == 'Access Number'
        assert sheet.cell(row=2, column=2).value == 'AA01'


class TestConcurrentAdmission:
    def test_parallel_admissions_get_distinct_numbers(self, tmp_path):
        class FileDatabaseConfig(TestingConfig):
            SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'school.db'}"

        app = create_app(FileDatabaseConfig)
        with app.app_context():
            db.create_all()
            admin = User(name='Head Teacher', email='admin@school.test', role='ADMIN')
            admin.set_password('admin-password')
            db.session.add(admin)
            db.session.commit()
            headers = {'Authorization': f'Bearer {create_access_token(admin)}'}

        workers = 20
        barrier = threading.Barrier(workers)

        def admit_one(i):
            payload = {
                'name': f'Student {i}',
                'age': 14,
                'class': 'Senior 1',
                'stream': 'A',
                'parent': {'name': f'Parent {i}'},
            }
            barrier.wait()
            response = app.test_client().post('/api/students', json=payload, headers=headers)
            return response.status_code, response.get_json()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(admit_one, range(workers)))

        assert [status for status, _ in results] == [201] * workers
        numbers = [body['student']['accessNumber'] for _, body in results]
        assert len(set(numbers)) == workers
        assert sorted(numbers) == [f'AA{n:02d}' for n in range(1, workers + 1)]

        with app.app_context():
            assert Student.query.filter_by(status='active').count() == workers
            db.session.remove()
            db.drop_all()
            db.engine.dispose()
