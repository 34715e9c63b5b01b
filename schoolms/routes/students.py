import time
from io import BytesIO

from flask import Blueprint, request, jsonify, current_app, send_file
from flask_login import current_user
from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from sqlalchemy.exc import IntegrityError

from schoolms.decorators import admin_required, require_login
from schoolms.exceptions import (
    SchoolMSError, AccessNumberConflict, AdmissionIdTaken, ValidationError,
)
from schoolms.extensions import db
from schoolms.models import Student, DroppedAccessNumber
from schoolms.models.student import ACTIVE, RE_ADMITTED
from schoolms.utils.access_numbers import (
    OVERSEER, allocate_access_number, allocation_guard, claim_access_number,
    is_placeholder, placeholder_id, release_access_number,
)
from schoolms.utils.admissions import generate_admission_id
from schoolms.utils.duplicates import find_duplicate, describe_duplicate
from schoolms.utils.fees import fees_for_admission, normalize_residence
from schoolms.utils.timezone import school_now, school_now_naive

students_bp = Blueprint('students', __name__, url_prefix='/api/students')

FLAG_STATUSES = {'left', 'expelled', RE_ADMITTED, 'graduated', 'transferred', 'suspended'}
CONDUCT_NOTE_TYPES = {'positive', 'negative', 'warning', 'achievement', 'incident'}
MAX_CONDUCT_NOTE_LENGTH = 1000

# request key -> model attribute, for fields copied as-is on update
UPDATABLE_FIELDS = {
    'name': 'name',
    'nin': 'nin',
    'lin': 'lin',
    'dateOfBirth': 'date_of_birth',
    'gender': 'gender',
    'phone': 'phone',
    'email': 'email',
    'stream': 'stream',
    'needsSponsorship': 'needs_sponsorship',
    'sponsorshipStatus': 'sponsorship_status',
    'sponsorshipStory': 'sponsorship_story',
    'classCompletion': 'class_completion',
    'careerAspiration': 'career_aspiration',
    'parentAddress': 'parent_address',
    'parentOccupation': 'parent_occupation',
}

PARENT_FIELDS = {
    'name': 'parent_name',
    'phone': 'parent_phone',
    'email': 'parent_email',
    'address': 'parent_address',
    'occupation': 'parent_occupation',
    'relationship': 'parent_relationship',
}


@students_bp.before_request
def before_request_students():
    return require_login()


def serialize_student(student):
    return {
        'id': student.id,
        'name': student.name,
        'accessNumber': student.access_number,
        'admissionId': student.admission_id,
        'nin': student.nin,
        'lin': student.lin,
        'dateOfBirth': student.date_of_birth,
        'age': student.age,
        'gender': student.gender,
        'residenceType': student.residence_type,
        'phone': student.phone,
        'email': student.email,
        'class': student.class_name,
        'stream': student.stream,
        'needsSponsorship': student.needs_sponsorship,
        'sponsorshipStatus': student.sponsorship_status,
        'sponsorshipStory': student.sponsorship_story,
        'classCompletion': student.class_completion,
        'careerAspiration': student.career_aspiration,
        'parent': {
            'name': student.parent_name,
            'phone': student.parent_phone,
            'email': student.parent_email,
            'address': student.parent_address,
            'occupation': student.parent_occupation,
            'relationship': student.parent_relationship,
        },
        'totalFees': student.total_fees or 0,
        'feesPaid': student.fees_paid or 0,
        'feeBalance': student.fee_balance or 0,
        'individualFee': student.individual_fee,
        'conductNotes': student.conduct_notes or [],
        'status': student.status,
        'flagComment': student.flag_comment,
        'admittedBy': student.admitted_by,
        'createdAt': student.created_at.isoformat() if student.created_at else None,
        'updatedAt': student.updated_at.isoformat() if student.updated_at else None,
    }


def serialize_dropped(entry):
    return {
        'id': entry.id,
        'accessNumber': entry.access_number,
        'className': entry.class_name,
        'streamName': entry.stream_name,
        'droppedAt': entry.dropped_at.isoformat() if entry.dropped_at else None,
        'reason': entry.reason,
    }


def _parse_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_float(value):
    if value in (None, ''):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid number: {value}')


def _get_student_or_404(student_id):
    student = db.session.get(Student, student_id)
    if student is None:
        return None, (jsonify({'success': False, 'message': 'Student not found'}), 404)
    return student, None


def _commit_admission(access_number):
    """Commit a new or re-numbered student, mapping unique-index races to conflicts."""
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        detail = str(exc.orig)
        if 'access_number' in detail:
            raise AccessNumberConflict(accessNumber=access_number)
        if 'admission_id' in detail:
            raise AdmissionIdTaken('Admission ID already exists')
        raise


@students_bp.route('/', methods=['GET'], strict_slashes=False)
def get_students():
    try:
        students = Student.query.order_by(Student.created_at.desc(), Student.id.desc()).all()
        return jsonify({'success': True, 'students': [serialize_student(s) for s in students]})
    except Exception as e:
        current_app.logger.error(f"Error fetching students: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to fetch students'}), 500


@students_bp.route('/enrolled', methods=['GET'])
def get_enrolled_students():
    try:
        students = Student.query.filter_by(status=ACTIVE).order_by(
            Student.created_at.desc(), Student.id.desc()).all()
        return jsonify({'success': True, 'students': [serialize_student(s) for s in students]})
    except Exception as e:
        current_app.logger.error(f"Error fetching enrolled students: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to fetch enrolled students'}), 500


@students_bp.route('/dropped-access-numbers', methods=['GET'])
def get_dropped_access_numbers():
    try:
        entries = DroppedAccessNumber.query.order_by(
            DroppedAccessNumber.dropped_at.desc(), DroppedAccessNumber.id.desc()).all()
        return jsonify({'success': True, 'droppedAccessNumbers': [serialize_dropped(e) for e in entries]})
    except Exception as e:
        current_app.logger.error(f"Error fetching dropped access numbers: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to fetch dropped access numbers'}), 500


@students_bp.route('/dropped-access-numbers/<string:class_name>/<string:stream>', methods=['GET'])
def get_dropped_access_numbers_for_stream(class_name, stream):
    try:
        entries = DroppedAccessNumber.query.filter_by(
            class_name=class_name, stream_name=stream
        ).order_by(DroppedAccessNumber.dropped_at.asc(), DroppedAccessNumber.id.asc()).all()
        return jsonify({
            'success': True,
            'className': class_name,
            'stream': stream,
            'accessNumbers': [e.access_number for e in entries],
        })
    except Exception as e:
        current_app.logger.error(f"Error fetching dropped access numbers by class/stream: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to fetch dropped access numbers'}), 500


@students_bp.route('/dropped-access-numbers/<string:access_number>', methods=['DELETE'])
def remove_dropped_access_number(access_number):
    try:
        removed = DroppedAccessNumber.query.filter_by(access_number=access_number).delete()
        db.session.commit()
        if not removed:
            return jsonify({'success': False, 'message': 'Dropped access number not found'}), 404
        return jsonify({'success': True, 'message': 'Dropped access number removed successfully'})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error removing dropped access number: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to remove dropped access number'}), 500


@students_bp.route('/<int:student_id>/fee-balance', methods=['GET'])
def get_fee_balance(student_id):
    student, error = _get_student_or_404(student_id)
    if error:
        return error

    total = student.total_fees or 0
    paid = student.fees_paid or 0
    balance = total - paid
    return jsonify({
        'success': True,
        'studentId': student.id,
        'name': student.name,
        'accessNumber': student.access_number,
        'totalFees': total,
        'feesPaid': paid,
        'balance': balance,
        'isFullyPaid': balance <= 0,
    })


@students_bp.route('/<int:student_id>', methods=['GET'])
def get_student(student_id):
    student, error = _get_student_or_404(student_id)
    if error:
        return error
    return jsonify({'success': True, 'student': serialize_student(student)})


@students_bp.route('/', methods=['POST'], strict_slashes=False)
def create_student():
    """Admit a new student: validate, reject duplicates, allocate numbers, bill fees."""
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({'success': False, 'message': 'No input data provided'}), 400

        name = (data.get('name') or '').strip()
        class_name = (data.get('class') or data.get('className') or '').strip()
        stream = (data.get('stream') or '').strip() or None
        admitted_by = (data.get('admittedBy') or 'admin').strip().lower()
        is_overseer = admitted_by == OVERSEER
        age = _parse_int(data.get('age'))

        if not name:
            return jsonify({'success': False, 'message': 'Name is required'}), 400
        if not age or age <= 0:
            return jsonify({'success': False, 'message': 'Valid age is required'}), 400
        if not class_name:
            return jsonify({'success': False, 'message': 'Class is required'}), 400
        # Overseer pupils are not placed in a stream until the school admits them
        if not stream and not is_overseer:
            return jsonify({'success': False, 'message': 'Stream is required'}), 400

        parent = data.get('parent') or {}
        parent_name = parent.get('name') or data.get('parentName') or ''

        duplicate = find_duplicate(name, class_name, parent_name)
        if duplicate:
            current_app.logger.warning(f"Student creation rejected: {name} already in {class_name}")
            return jsonify(describe_duplicate(duplicate, name, class_name)), 400

        original_access_number = data.get('originalAccessNumber') if data.get('isReAdmission') else None
        residence_type = data.get('residenceType') or None
        individual_fee = _parse_float(data.get('individualFee'))

        with allocation_guard():
            access_number, source = allocate_access_number(
                class_name,
                stream,
                admitted_by=admitted_by,
                requested=(data.get('accessNumber') or '').strip() or None,
                original_access_number=original_access_number,
            )
            claim_access_number(access_number)

            if is_overseer:
                admission_id = placeholder_id()
            else:
                admission_id = (data.get('admissionId') or '').strip() or generate_admission_id(class_name)
                existing = Student.query.filter_by(admission_id=admission_id).first()
                if existing:
                    raise AdmissionIdTaken(
                        'Admission ID already exists',
                        details=f'Admission ID {admission_id} is already in use by student: {existing.name}',
                    )

            fees = fees_for_admission(class_name, residence_type)

            student = Student(
                name=name,
                access_number=access_number,
                admission_id=admission_id,
                nin=data.get('nin') or '',
                lin=data.get('lin') or '',
                date_of_birth=data.get('dateOfBirth') or '',
                age=age,
                gender=data.get('gender') or '',
                residence_type=normalize_residence(residence_type) if residence_type else None,
                phone=data.get('phone') or '',
                email=data.get('email') or '',
                class_name=class_name,
                stream=stream,
                needs_sponsorship=bool(data.get('needsSponsorship', False)),
                sponsorship_status=data.get('sponsorshipStatus') or ('pending' if is_overseer else 'awaiting'),
                sponsorship_story=data.get('sponsorshipStory') or '',
                class_completion=data.get('classCompletion') or '',
                career_aspiration=data.get('careerAspiration') or '',
                parent_name=parent_name,
                parent_phone=parent.get('phone') or '',
                parent_email=parent.get('email') or '',
                parent_address=parent.get('address') or data.get('parentAddress') or '',
                parent_occupation=parent.get('occupation') or data.get('parentOccupation') or '',
                parent_relationship=parent.get('relationship') or '',
                total_fees=fees.total_fees,
                fees_paid=0.0,
                fee_balance=fees.total_fees,
                individual_fee=individual_fee,
                conduct_notes=[],
                status=ACTIVE,
                admitted_by=admitted_by,
            )
            db.session.add(student)
            _commit_admission(access_number)

        current_app.logger.info(
            f"Student created successfully: {student.id} {student.name} "
            f"({student.access_number}, {student.admission_id}, via {source})"
        )
        return jsonify({
            'success': True,
            'message': 'Student created successfully',
            'student': serialize_student(student),
            'accessNumberSource': source,
            'fees': fees.to_dict(),
        }), 201

    except SchoolMSError:
        raise
    except Exception as e:
        current_app.logger.error(f"Unexpected error during student creation: {str(e)}", exc_info=True)
        db.session.rollback()
        return jsonify({'success': False, 'message': f'Failed to create student: {str(e)}'}), 500


@students_bp.route('/<int:student_id>', methods=['PUT'])
def update_student(student_id):
    try:
        student, error = _get_student_or_404(student_id)
        if error:
            return error

        data = request.get_json(silent=True)
        if not data:
            return jsonify({'success': False, 'message': 'No input data provided'}), 400

        if 'name' in data and not (data.get('name') or '').strip():
            return jsonify({'success': False, 'message': 'Name cannot be empty'}), 400

        for key, attribute in UPDATABLE_FIELDS.items():
            if key in data:
                setattr(student, attribute, data[key])

        if 'age' in data:
            age = _parse_int(data.get('age'))
            if not age or age <= 0:
                return jsonify({'success': False, 'message': 'Valid age is required'}), 400
            student.age = age

        if 'individualFee' in data:
            student.individual_fee = _parse_float(data.get('individualFee'))

        parent = data.get('parent')
        if isinstance(parent, dict):
            for key, attribute in PARENT_FIELDS.items():
                if key in parent:
                    setattr(student, attribute, parent.get(key) or '')

        fees_changed = False
        new_class = data.get('class') or data.get('className')
        if new_class and new_class != student.class_name:
            student.class_name = new_class
            fees_changed = True
        if data.get('residenceType'):
            residence = normalize_residence(data['residenceType'])
            if residence != student.residence_type:
                student.residence_type = residence
                fees_changed = True

        if fees_changed:
            fees = fees_for_admission(student.class_name, student.residence_type)
            student.total_fees = fees.total_fees
            student.fee_balance = fees.total_fees - (student.fees_paid or 0)

        student.updated_at = school_now_naive()
        db.session.commit()

        return jsonify({
            'success': True,
            'message': 'Student updated successfully',
            'student': serialize_student(student),
        })
    except SchoolMSError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error in update_student: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to update student'}), 500


@students_bp.route('/<int:student_id>', methods=['DELETE'])
@admin_required
def delete_student(student_id):
    try:
        student, error = _get_student_or_404(student_id)
        if error:
            return error

        # Overseer records are pupils until the school admits them
        if student.admitted_by == OVERSEER:
            return jsonify({
                'success': False,
                'message': 'Cannot delete overseer-admitted student',
                'details': 'Overseer-admitted records are pupils and must remain until admitted by the school.',
            }), 403

        current_app.logger.info(f"Deleting student: {student.name} ({student.access_number})")
        access_number = student.access_number
        release = release_access_number(student, 'Student deleted')

        db.session.delete(student)
        db.session.commit()

        return jsonify({
            'success': True,
            'message': 'Student deleted successfully',
            'accessNumber': access_number,
            'droppedAccessNumber': access_number if release.dropped is not None else None,
            'isHighestNumbered': release.is_highest,
        })
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error in delete_student: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to delete student'}), 500


@students_bp.route('/<int:student_id>/flag', methods=['PATCH'])
def flag_student(student_id):
    """Mark a student as left, expelled, re-admitted, ..."""
    try:
        student, error = _get_student_or_404(student_id)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        status = (data.get('status') or 'left').strip().lower()
        if status not in FLAG_STATUSES:
            return jsonify({
                'success': False,
                'message': f'Invalid status. Use one of: {", ".join(sorted(FLAG_STATUSES))}',
            }), 400

        current_app.logger.info(f"Flagging student: {student.name} ({student.access_number}) as {status}")

        # Re-admitted students keep their number for reference; it is not offered for reuse
        if status == RE_ADMITTED:
            release = None
        else:
            release = release_access_number(student, f'Student flagged as {status}')

        student.status = status
        student.flag_comment = data.get('comment') or ''
        student.updated_at = school_now_naive()
        db.session.commit()

        return jsonify({
            'success': True,
            'message': 'Student flagged successfully',
            'student': serialize_student(student),
            'accessNumber': student.access_number,
            'droppedAccessNumber': student.access_number if release and release.dropped is not None else None,
            'isHighestNumbered': bool(release and release.is_highest),
        })
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error in flag_student: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to flag student'}), 500


@students_bp.route('/<int:student_id>/conduct-notes', methods=['POST'])
def add_conduct_note(student_id):
    try:
        data = request.get_json(silent=True) or {}
        content = data.get('content')
        note_type = data.get('type')
        author = data.get('author') or getattr(current_user, 'name', None)

        if not content or not note_type or not author:
            return jsonify({'success': False, 'message': 'Content, type, and author are required'}), 400
        if len(content) > MAX_CONDUCT_NOTE_LENGTH:
            return jsonify({'success': False,
                            'message': f'Content must be less than {MAX_CONDUCT_NOTE_LENGTH} characters'}), 400
        if note_type not in CONDUCT_NOTE_TYPES:
            return jsonify({'success': False, 'message': 'Invalid conduct note type'}), 400

        student, error = _get_student_or_404(student_id)
        if error:
            return error

        now = school_now().isoformat()
        note = {
            'id': str(int(time.time() * 1000)),
            'content': content,
            'type': note_type,
            'author': author,
            'createdAt': now,
            'updatedAt': now,
        }
        # Assign a new list so the JSON column is flagged dirty
        student.conduct_notes = list(student.conduct_notes or []) + [note]
        student.updated_at = school_now_naive()
        db.session.commit()

        current_app.logger.info(f"Conduct note added to student {student.name} ({student.access_number}): {note_type} by {author}")
        return jsonify({
            'success': True,
            'message': 'Conduct note added successfully',
            'student': serialize_student(student),
            'newNote': note,
        })
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error adding conduct note: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to add conduct note'}), 500


@students_bp.route('/<int:student_id>/approve-overseer-admission', methods=['POST'])
def approve_overseer_admission(student_id):
    """Give an overseer pupil a real access number once the school admits them."""
    try:
        student, error = _get_student_or_404(student_id)
        if error:
            return error

        if not is_placeholder(student.access_number):
            return jsonify({'success': False, 'message': 'Student already has an access number'}), 400

        data = request.get_json(silent=True) or {}
        stream = (data.get('stream') or student.stream or '').strip() or None
        if not stream:
            return jsonify({'success': False, 'message': 'Stream is required'}), 400

        with allocation_guard():
            access_number, source = allocate_access_number(
                student.class_name,
                stream,
                requested=(data.get('accessNumber') or '').strip() or None,
            )
            claim_access_number(access_number, student_id=student.id)

            student.access_number = access_number
            student.stream = stream
            if is_placeholder(student.admission_id):
                student.admission_id = generate_admission_id(student.class_name)
            student.sponsorship_status = 'approved'
            student.updated_at = school_now_naive()
            _commit_admission(access_number)

        current_app.logger.info(f"Overseer admission approved: {student.name} -> {access_number} (via {source})")
        return jsonify({
            'success': True,
            'message': 'Overseer admission approved successfully',
            'student': serialize_student(student),
        })
    except SchoolMSError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error approving overseer admission: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to approve overseer admission'}), 500


@students_bp.route('/export', methods=['GET'])
def export_students():
    """Export the student register to an XLSX file with auto-fit column widths"""
    try:
        students = Student.query.order_by(Student.class_name, Student.stream, Student.access_number).all()

        wb = Workbook()
        ws = wb.active
        ws.title = "Students"

        headers = ['No.', 'Access Number', 'Admission ID', 'Name', 'Class', 'Stream',
                   'Residence', 'Status', 'Total Fees', 'Fees Paid', 'Balance']
        ws.append(headers)
        for row_num, student in enumerate(students, start=1):
            ws.append([
                row_num,
                student.access_number,
                student.admission_id,
                student.name,
                student.class_name,
                student.stream or '',
                student.residence_type or '',
                student.status,
                student.total_fees or 0,
                student.fees_paid or 0,
                (student.total_fees or 0) - (student.fees_paid or 0),
            ])

        # Auto-fit column widths based on content
        for col_num in range(1, len(headers) + 1):
            column_letter = get_column_letter(col_num)
            max_length = max(
                (len(str(cell.value)) for cell in ws[column_letter] if cell.value is not None),
                default=0,
            )
            ws.column_dimensions[column_letter].width = min(max_length + 2, 50)

        excel_buffer = BytesIO()
        wb.save(excel_buffer)
        excel_buffer.seek(0)

        filename = f'students_export_{school_now().strftime("%Y%m%d_%H%M%S")}.xlsx'
        return send_file(
            excel_buffer,
            mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            as_attachment=True,
            download_name=filename
        )
    except Exception as e:
        current_app.logger.error(f"Error exporting students: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 500
