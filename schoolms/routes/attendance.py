from datetime import datetime

from flask import Blueprint, request, jsonify, current_app

from schoolms.decorators import require_login, roles_required
from schoolms.extensions import db
from schoolms.models import Attendance, Student
from schoolms.models.student import ACTIVE
from schoolms.utils.timezone import school_now

attendance_bp = Blueprint('attendance', __name__, url_prefix='/api/attendance')

ATTENDANCE_STATUSES = {'present', 'absent', 'late', 'excused', 'not_marked'}


@attendance_bp.before_request
def before_request_attendance():
    return require_login()


def serialize_attendance(record):
    return {
        'id': record.id,
        'studentId': record.student_id,
        'date': record.date.isoformat() if record.date else None,
        'time': record.time,
        'status': record.status,
        'teacherId': record.teacher_id,
        'teacherName': record.teacher_name,
        'remarks': record.remarks,
        'notificationSent': record.notification_sent,
        'createdAt': record.created_at.isoformat() if record.created_at else None,
        'updatedAt': record.updated_at.isoformat() if record.updated_at else None,
    }


def parse_date(value):
    """Accept 'YYYY-MM-DD' or a full ISO timestamp; return a date or None."""
    if not value:
        return None
    try:
        return datetime.strptime(value[:10], '%Y-%m-%d').date()
    except (TypeError, ValueError):
        return None


def _current_time():
    return school_now().strftime('%H:%M:%S')


@attendance_bp.route('/', methods=['GET'], strict_slashes=False)
def get_attendance_records():
    try:
        records = Attendance.query.order_by(Attendance.date.desc(), Attendance.id.desc()).all()
        return jsonify([serialize_attendance(r) for r in records])
    except Exception as e:
        current_app.logger.error(f"Error fetching attendance records: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to fetch attendance records'}), 500


@attendance_bp.route('/student/<string:student_id>', methods=['GET'])
def get_student_attendance(student_id):
    try:
        records = Attendance.query.filter_by(student_id=student_id).order_by(Attendance.date.desc()).all()
        return jsonify([serialize_attendance(r) for r in records])
    except Exception as e:
        current_app.logger.error(f"Error fetching student attendance: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to fetch student attendance'}), 500


@attendance_bp.route('/date/<string:date_str>', methods=['GET'])
def get_attendance_by_date(date_str):
    day = parse_date(date_str)
    if day is None:
        return jsonify({'success': False, 'message': 'Invalid date format. Use YYYY-MM-DD'}), 400
    records = Attendance.query.filter_by(date=day).order_by(Attendance.time.asc()).all()
    return jsonify([serialize_attendance(r) for r in records])


@attendance_bp.route('/', methods=['POST'], strict_slashes=False)
@roles_required('TEACHER')
def mark_attendance():
    """Record attendance; a second mark for the same student and day updates the first."""
    try:
        data = request.get_json(silent=True) or {}
        student_id = data.get('studentId')
        status = data.get('status')
        teacher_id = data.get('teacherId')
        teacher_name = data.get('teacherName')

        if not student_id or not data.get('date') or not status or not teacher_id or not teacher_name:
            return jsonify({
                'success': False,
                'message': 'Student ID, date, status, teacher ID, and teacher name are required',
            }), 400

        day = parse_date(data.get('date'))
        if day is None:
            return jsonify({'success': False, 'message': 'Invalid date format. Use YYYY-MM-DD'}), 400
        if status not in ATTENDANCE_STATUSES:
            return jsonify({'success': False, 'message': f'Invalid status: {status}'}), 400

        student_id = str(student_id)
        record = Attendance.query.filter_by(student_id=student_id, date=day).first()
        if record:
            record.status = status
            record.time = data.get('time') or _current_time()
            record.teacher_id = str(teacher_id)
            record.teacher_name = teacher_name
            record.remarks = data.get('remarks')
            record.notification_sent = bool(data.get('notificationSent', False))
            current_app.logger.info(f"Updated existing attendance record for student {student_id} on {day}")
        else:
            record = Attendance(
                student_id=student_id,
                date=day,
                time=data.get('time') or _current_time(),
                status=status,
                teacher_id=str(teacher_id),
                teacher_name=teacher_name,
                remarks=data.get('remarks'),
                notification_sent=bool(data.get('notificationSent', False)),
            )
            db.session.add(record)
            current_app.logger.info(f"Created attendance record for student {student_id} on {day}")

        db.session.commit()
        return jsonify(serialize_attendance(record)), 201
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating/updating attendance record: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to create/update attendance record'}), 500


@attendance_bp.route('/<string:record_id>', methods=['PUT'])
@roles_required('TEACHER')
def update_attendance(record_id):
    try:
        if not record_id.isdigit():
            return jsonify({'success': False, 'message': 'Invalid attendance record ID'}), 400

        record = db.session.get(Attendance, int(record_id))
        if record is None:
            return jsonify({'success': False, 'message': 'Attendance record not found'}), 404

        data = request.get_json(silent=True) or {}
        if data.get('status'):
            if data['status'] not in ATTENDANCE_STATUSES:
                return jsonify({'success': False, 'message': f"Invalid status: {data['status']}"}), 400
            record.status = data['status']
        if 'remarks' in data:
            record.remarks = data['remarks']
        if 'notificationSent' in data:
            record.notification_sent = bool(data['notificationSent'])

        db.session.commit()
        return jsonify(serialize_attendance(record))
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating attendance record: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to update attendance record'}), 500


@attendance_bp.route('/<int:record_id>', methods=['DELETE'])
@roles_required('TEACHER')
def delete_attendance(record_id):
    try:
        record = db.session.get(Attendance, record_id)
        if record is None:
            return jsonify({'success': False, 'message': 'Attendance record not found'}), 404
        db.session.delete(record)
        db.session.commit()
        return jsonify({'success': True, 'message': 'Attendance record deleted successfully'})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting attendance record: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to delete attendance record'}), 500


@attendance_bp.route('/ensure-daily', methods=['POST'])
@roles_required('TEACHER')
def ensure_daily_attendance():
    """Create 'not_marked' placeholders for active students with no record for the day."""
    try:
        data = request.get_json(silent=True) or {}
        day = parse_date(data.get('date')) if data.get('date') else school_now().date()
        if day is None:
            return jsonify({'success': False, 'message': 'Invalid date format. Use YYYY-MM-DD'}), 400

        students = Student.query.filter_by(status=ACTIVE).all()
        marked = {
            student_id for (student_id,) in
            db.session.query(Attendance.student_id).filter(Attendance.date == day).all()
        }

        created = 0
        now = _current_time()
        for student in students:
            if str(student.id) in marked:
                continue
            db.session.add(Attendance(
                student_id=str(student.id),
                date=day,
                time=now,
                status='not_marked',
                teacher_id='system',
                teacher_name='System',
                remarks='Auto-generated placeholder for accountability',
                notification_sent=False,
            ))
            created += 1

        db.session.commit()
        return jsonify({
            'success': True,
            'date': day.isoformat(),
            'created': created,
            'totalStudents': len(students),
        })
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error ensuring daily attendance: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to ensure daily attendance'}), 500
