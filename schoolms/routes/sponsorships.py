from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify, current_app

from schoolms.decorators import require_login
from schoolms.extensions import db
from schoolms.models import Sponsorship, Student
from schoolms.routes.students import serialize_student
from schoolms.utils.timezone import school_now_naive

sponsorships_bp = Blueprint('sponsorships', __name__, url_prefix='/api/sponsorships')

# request key -> column, for PUT
UPDATABLE_FIELDS = {
    'sponsorName': 'sponsor_name',
    'sponsorCountry': 'sponsor_country',
    'type': 'type',
    'status': 'status',
    'description': 'description',
}


@sponsorships_bp.before_request
def before_request_sponsorships():
    return require_login()


def serialize_sponsorship(sponsorship):
    return {
        'id': sponsorship.id,
        'studentId': sponsorship.student_id,
        'sponsorId': sponsorship.sponsor_id,
        'sponsorName': sponsorship.sponsor_name,
        'sponsorCountry': sponsorship.sponsor_country,
        'amount': sponsorship.amount,
        'type': sponsorship.type,
        'status': sponsorship.status,
        'startDate': sponsorship.start_date.isoformat() if sponsorship.start_date else None,
        'endDate': sponsorship.end_date.isoformat() if sponsorship.end_date else None,
        'description': sponsorship.description,
        'createdAt': sponsorship.created_at.isoformat() if sponsorship.created_at else None,
        'updatedAt': sponsorship.updated_at.isoformat() if sponsorship.updated_at else None,
    }


def _parse_datetime(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).replace(tzinfo=None)
    except ValueError:
        return None


def _get_sponsorship_or_404(sponsorship_id):
    sponsorship = db.session.get(Sponsorship, sponsorship_id)
    if sponsorship is None:
        return None, (jsonify({'success': False, 'message': 'Sponsorship not found', 'id': sponsorship_id}), 404)
    return sponsorship, None


def _set_status(sponsorship_id, status, student_status=None):
    """Move a sponsorship (and optionally its student) to a new status."""
    try:
        sponsorship, error = _get_sponsorship_or_404(sponsorship_id)
        if error:
            return error

        sponsorship.status = status
        if student_status and sponsorship.student is not None:
            sponsorship.student.sponsorship_status = student_status
            sponsorship.student.updated_at = school_now_naive()
        db.session.commit()

        current_app.logger.info(f"Sponsorship {sponsorship.id} for student {sponsorship.student_id} is now {status}")
        return jsonify(serialize_sponsorship(sponsorship))
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error setting sponsorship {sponsorship_id} to {status}: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': f'Failed to update sponsorship to {status}'}), 500


@sponsorships_bp.route('/', methods=['GET'], strict_slashes=False)
def get_sponsorships():
    try:
        sponsorships = Sponsorship.query.order_by(Sponsorship.created_at.desc(), Sponsorship.id.desc()).all()
        return jsonify([serialize_sponsorship(s) for s in sponsorships])
    except Exception as e:
        current_app.logger.error(f"Error fetching sponsorships: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to fetch sponsorships'}), 500


@sponsorships_bp.route('/<int:sponsorship_id>', methods=['GET'])
def get_sponsorship(sponsorship_id):
    sponsorship, error = _get_sponsorship_or_404(sponsorship_id)
    if error:
        return error
    return jsonify(serialize_sponsorship(sponsorship))


@sponsorships_bp.route('/', methods=['POST'], strict_slashes=False)
def create_sponsorship():
    """Create a pending sponsorship and put the student under sponsorship review."""
    try:
        data = request.get_json(silent=True) or {}
        student_id = data.get('studentId')
        sponsor_name = data.get('sponsorName')
        amount = data.get('amount')

        if not student_id or not sponsor_name or not amount:
            return jsonify({'success': False, 'message': 'Missing required fields'}), 400

        try:
            amount = float(amount)
            student_id = int(student_id)
            duration_months = int(data.get('duration') or 12)
        except (TypeError, ValueError):
            return jsonify({'success': False, 'message': 'Invalid amount, student ID or duration'}), 400

        student = db.session.get(Student, student_id)
        if student is None:
            return jsonify({'success': False, 'message': 'Student not found'}), 404

        start_date = _parse_datetime(data.get('sponsorshipStartDate')) or school_now_naive()
        sponsorship = Sponsorship(
            student_id=student.id,
            sponsor_id=data.get('sponsorId') or None,
            sponsor_name=sponsor_name,
            sponsor_country=data.get('sponsorCountry') or 'Uganda',
            amount=amount,
            type=data.get('sponsorRelationship') or 'individual',
            status='pending',
            start_date=start_date,
            end_date=start_date + timedelta(days=30 * duration_months),
            description=data.get('description') or '',
        )
        db.session.add(sponsorship)

        # Keep the student out of the available pool while the sponsorship is reviewed
        student.sponsorship_status = 'under-sponsorship-review'
        student.updated_at = school_now_naive()
        db.session.commit()

        current_app.logger.info(f"Sponsorship {sponsorship.id} created for student {student.id} by {sponsor_name}")
        return jsonify(serialize_sponsorship(sponsorship)), 201
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating sponsorship: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to create sponsorship'}), 500


@sponsorships_bp.route('/<int:sponsorship_id>', methods=['PUT'])
def update_sponsorship(sponsorship_id):
    try:
        sponsorship, error = _get_sponsorship_or_404(sponsorship_id)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        for key, attribute in UPDATABLE_FIELDS.items():
            if key in data:
                setattr(sponsorship, attribute, data[key])
        if 'amount' in data:
            try:
                sponsorship.amount = float(data['amount'])
            except (TypeError, ValueError):
                return jsonify({'success': False, 'message': 'Invalid amount'}), 400
        if 'startDate' in data:
            sponsorship.start_date = _parse_datetime(data['startDate'])
        if 'endDate' in data:
            sponsorship.end_date = _parse_datetime(data['endDate'])

        db.session.commit()
        return jsonify(serialize_sponsorship(sponsorship))
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating sponsorship: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to update sponsorship'}), 500


@sponsorships_bp.route('/<int:sponsorship_id>', methods=['DELETE'])
def delete_sponsorship(sponsorship_id):
    try:
        sponsorship, error = _get_sponsorship_or_404(sponsorship_id)
        if error:
            return error
        db.session.delete(sponsorship)
        db.session.commit()
        return jsonify({'success': True, 'message': 'Sponsorship deleted successfully'})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting sponsorship: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to delete sponsorship'}), 500


@sponsorships_bp.route('/<int:sponsorship_id>/approve', methods=['POST'])
def approve_sponsorship(sponsorship_id):
    return _set_status(sponsorship_id, 'coordinator-approved')


@sponsorships_bp.route('/<int:sponsorship_id>/reject', methods=['POST'])
def reject_sponsorship(sponsorship_id):
    return _set_status(sponsorship_id, 'rejected', student_status='available-for-sponsors')


@sponsorships_bp.route('/<int:sponsorship_id>/complete', methods=['POST'])
def complete_sponsorship(sponsorship_id):
    return _set_status(sponsorship_id, 'completed')


@sponsorships_bp.route('/<int:sponsorship_id>/approve-sponsored', methods=['POST'])
def approve_sponsored(sponsorship_id):
    return _set_status(sponsorship_id, 'sponsored', student_status='sponsored')


def _set_student_sponsorship_status(student_id, status, message):
    try:
        student = db.session.get(Student, student_id)
        if student is None:
            return jsonify({'success': False, 'message': 'Student not found'}), 404
        student.sponsorship_status = status
        student.updated_at = school_now_naive()
        db.session.commit()
        return jsonify({'success': True, 'message': message, 'student': serialize_student(student)})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error setting sponsorship status of student {student_id}: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to update student sponsorship status'}), 500


@sponsorships_bp.route('/student/<int:student_id>/make-available', methods=['POST'])
def make_student_available(student_id):
    return _set_student_sponsorship_status(student_id, 'available-for-sponsors',
                                           'Student is now available for sponsors')


@sponsorships_bp.route('/student/<int:student_id>/make-eligible', methods=['POST'])
def make_student_eligible(student_id):
    return _set_student_sponsorship_status(student_id, 'eligible', 'Student is now eligible for sponsorship')
