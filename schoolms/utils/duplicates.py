import logging
from collections import namedtuple
from datetime import timedelta

from sqlalchemy import func, or_

from schoolms.models import Student
from schoolms.utils.timezone import school_now_naive

logger = logging.getLogger(__name__)

EXACT_MATCH = 'EXACT_MATCH'
SIMILAR_MATCH = 'SIMILAR_MATCH'
OVERSEER_MATCH = 'OVERSEER_MATCH'
TEMPORAL_MATCH = 'TEMPORAL_MATCH'

ERROR_CODES = {
    EXACT_MATCH: 'DUPLICATE_STUDENT_DETECTED',
    SIMILAR_MATCH: 'SIMILAR_STUDENT_EXISTS',
    OVERSEER_MATCH: 'OVERSEER_STUDENT_EXISTS',
    TEMPORAL_MATCH: 'RECENT_DUPLICATE_DETECTED',
}

LIVE_STATUSES = ('active', 'pending', 'sponsored')
RECENT_STATUSES = LIVE_STATUSES + ('awaiting',)
RECENT_WINDOW = timedelta(days=30)

DuplicateMatch = namedtuple('DuplicateMatch', ['level', 'student'])


def _same_name_in_class(name, class_name, statuses):
    return Student.query.filter(
        func.lower(Student.name) == name.strip().lower(),
        Student.class_name == class_name,
        Student.status.in_(statuses),
    )


def find_duplicate(name, class_name, parent_name=''):
    """Look for a registered student the new admission would duplicate.

    Checks run from the most to the least specific and the first hit wins.
    """
    if not name or not class_name:
        return None

    exact = _same_name_in_class(name, class_name, LIVE_STATUSES).filter(
        Student.parent_name == (parent_name or '')).first()
    if exact:
        return DuplicateMatch(EXACT_MATCH, exact)

    from_overseer = or_(
        Student.access_number.like('None-%'),
        Student.admission_id.like('None-%'),
        Student.admitted_by == 'overseer',
    )

    similar = _same_name_in_class(name, class_name, LIVE_STATUSES).filter(~from_overseer).first()
    if similar:
        return DuplicateMatch(SIMILAR_MATCH, similar)

    overseer = _same_name_in_class(name, class_name, LIVE_STATUSES).filter(from_overseer).first()
    if overseer:
        return DuplicateMatch(OVERSEER_MATCH, overseer)

    recent = _same_name_in_class(name, class_name, RECENT_STATUSES).filter(
        Student.created_at >= school_now_naive() - RECENT_WINDOW).first()
    if recent:
        return DuplicateMatch(TEMPORAL_MATCH, recent)

    return None


def describe_duplicate(match, name, class_name):
    """Response payload for a rejected admission."""
    student = match.student
    logger.info("Duplicate admission rejected (%s): %s in %s matches student %s",
                match.level, name, class_name, student.id)
    return {
        'success': False,
        'error': ERROR_CODES[match.level],
        'message': 'Duplicate student detected',
        'details': f'A student with name "{name}" already exists in class "{class_name}".',
        'preventionLevel': match.level,
        'existingStudent': {
            'id': student.id,
            'name': student.name,
            'class': student.class_name,
            'accessNumber': student.access_number,
            'admissionId': student.admission_id,
            'parentName': student.parent_name,
            'createdAt': student.created_at.isoformat() if student.created_at else None,
        },
    }
