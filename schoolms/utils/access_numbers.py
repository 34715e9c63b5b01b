"""Access-number allocation and recycling for student admissions.

An access number is a per-stream identifier such as ``BA01``: class code
(``Senior 2`` -> ``B``), stream code (``A``) and a two digit sequence.
Pupils registered by an overseer get a ``None-`` placeholder instead,
which is swapped for a real number once the school admits them.
"""
import logging
import random
import re
import string
import threading
import time
from collections import namedtuple
from contextlib import contextmanager

from sqlalchemy import and_, or_

from schoolms.extensions import db
from schoolms.exceptions import AccessNumberConflict, AccessNumberTaken
from schoolms.models import Student, DroppedAccessNumber
from schoolms.models.student import ACTIVE, RE_ADMITTED
from schoolms.utils.timezone import school_now_naive

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = 'None-'
OVERSEER = 'overseer'

CLASS_CODES = {
    'Senior 1': 'A',
    'Senior 2': 'B',
    'Senior 3': 'C',
    'Senior 4': 'D',
    'Senior 5': 'E',
    'Senior 6': 'F',
}
UNKNOWN_CLASS_CODE = 'X'
UNKNOWN_STREAM_CODE = 'N'

SUFFIX_PATTERN = re.compile(r'(\d+)$')

Release = namedtuple('Release', ['is_highest', 'dropped'])

_allocation_lock = threading.Lock()


def class_code(class_name):
    return CLASS_CODES.get((class_name or '').strip(), UNKNOWN_CLASS_CODE)


def stream_code(stream):
    if not stream:
        return UNKNOWN_STREAM_CODE
    first = stream.strip().upper()[:1]
    return first if 'A' <= first <= 'Z' else UNKNOWN_STREAM_CODE


def access_number_prefix(class_name, stream):
    return f'{class_code(class_name)}{stream_code(stream)}'


def format_access_number(class_name, stream, number):
    return f'{access_number_prefix(class_name, stream)}{number:02d}'


def access_number_suffix(access_number):
    """Trailing sequence number of an access number, 0 when there is none."""
    if not access_number:
        return 0
    match = SUFFIX_PATTERN.search(access_number)
    return int(match.group(1)) if match else 0


def is_placeholder(value):
    return bool(value) and value.startswith(PLACEHOLDER_PREFIX)


def placeholder_id():
    """Throwaway identifier for overseer pupils, exempt from uniqueness checks."""
    token = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f'{PLACEHOLDER_PREFIX}{int(time.time() * 1000)}-{token}'


def smallest_unused(numbers):
    used = set(numbers)
    candidate = 1
    while candidate in used:
        candidate += 1
    return candidate


def active_holder(access_number, exclude_id=None):
    """Return the active student currently holding ``access_number``, if any."""
    query = Student.query.filter(
        Student.access_number == access_number,
        Student.status == ACTIVE,
    )
    if exclude_id is not None:
        query = query.filter(Student.id != exclude_id)
    return query.first()


def active_students_in_stream(class_name, stream):
    return Student.query.filter(
        Student.class_name == class_name,
        Student.stream == stream,
        Student.status == ACTIVE,
    )


@contextmanager
def allocation_guard():
    """Serialize allocate-and-commit within this process.

    Admissions handled by other processes are caught by the re-check in
    :func:`generate_access_number` and by the partial unique index on
    ``students.access_number``.
    """
    with _allocation_lock:
        yield


def next_dropped_number(class_name, stream):
    """Oldest dropped access number for the stream that nobody holds again.

    Entries whose number has since been given to an active student are
    stale and are removed on the way.
    """
    entries = (
        DroppedAccessNumber.query
        .filter_by(class_name=class_name, stream_name=stream)
        .order_by(DroppedAccessNumber.dropped_at.asc(), DroppedAccessNumber.id.asc())
        .all()
    )
    for entry in entries:
        if active_holder(entry.access_number):
            logger.warning("Discarding stale dropped access number %s (%s/%s)",
                           entry.access_number, class_name, stream)
            db.session.delete(entry)
            continue
        return entry.access_number
    return None


def generate_access_number(class_name, stream):
    """Pick the smallest sequence number unused by active students of the stream.

    Raises AccessNumberConflict if the candidate was claimed by a concurrent
    admission between the scan and the re-check.
    """
    prefix = access_number_prefix(class_name, stream)
    students = (
        Student.query
        .filter(
            Student.status == ACTIVE,
            or_(
                and_(Student.class_name == class_name, Student.stream == stream),
                Student.access_number.like(f'{prefix}%'),
            ),
        )
        .with_for_update()
        .all()
    )
    used = [
        access_number_suffix(s.access_number)
        for s in students
        if s.access_number and not is_placeholder(s.access_number)
    ]
    candidate = format_access_number(class_name, stream, smallest_unused(used))

    # Double-check this number isn't being used by another concurrent request
    conflicting = active_holder(candidate)
    if conflicting:
        logger.warning("Access number %s claimed concurrently by student %s", candidate, conflicting.id)
        raise AccessNumberConflict(accessNumber=candidate)

    return candidate


def allocate_access_number(class_name, stream, admitted_by=None, requested=None,
                           original_access_number=None):
    """Choose the access number for a new admission.

    Returns ``(access_number, source)``; source is one of ``placeholder``,
    ``requested``, ``readmission``, ``dropped`` or ``generated``.
    """
    if (admitted_by or '').lower() == OVERSEER:
        return placeholder_id(), 'placeholder'

    if requested:
        return requested, 'requested'

    if original_access_number:
        if not active_holder(original_access_number):
            logger.info("Re-admission: reusing original access number %s", original_access_number)
            return original_access_number, 'readmission'
        logger.info("Re-admission: original access number %s is taken, allocating a new one",
                    original_access_number)

    dropped = next_dropped_number(class_name, stream)
    if dropped:
        logger.info("Reusing dropped access number %s", dropped)
        return dropped, 'dropped'

    generated = generate_access_number(class_name, stream)
    logger.info("Generated new access number %s", generated)
    return generated, 'generated'


def claim_access_number(access_number, student_id=None):
    """Take a real access number out of circulation for a new holder.

    Rejects numbers already held by an active student, removes the number
    from the dropped list and deletes a superseded re-admitted record
    carrying the same number.
    """
    if is_placeholder(access_number):
        return

    if active_holder(access_number, exclude_id=student_id):
        raise AccessNumberTaken('Access number already exists', accessNumber=access_number)

    removed = DroppedAccessNumber.query.filter_by(access_number=access_number).delete()
    if removed:
        logger.info("Removed %s from dropped access numbers (now in use)", access_number)

    old_record = Student.query.filter(
        Student.access_number == access_number,
        Student.status == RE_ADMITTED,
    ).first()
    if old_record is not None and old_record.id != student_id:
        logger.info("Deleting superseded re-admitted record %s (%s)", old_record.id, access_number)
        db.session.delete(old_record)


def release_access_number(student, reason):
    """Apply the recycling rule to an active student who is leaving the stream.

    The highest-numbered active student's number simply falls back into the
    pool (the next scan will pick it up again); any other number is parked
    in the dropped list for first-come reuse.
    """
    number = student.access_number
    if student.status != ACTIVE or not number or is_placeholder(number):
        return Release(False, None)

    own_suffix = access_number_suffix(number)
    others = active_students_in_stream(student.class_name, student.stream).filter(
        Student.id != student.id).all()
    is_highest = all(
        access_number_suffix(other.access_number) < own_suffix
        for other in others
        if other.access_number and not is_placeholder(other.access_number)
    )
    if is_highest:
        logger.info("%s goes back to the main pool (highest number in stream)", number)
        return Release(True, None)

    existing = DroppedAccessNumber.query.filter_by(
        access_number=number,
        class_name=student.class_name,
        stream_name=student.stream,
    ).first()
    if existing is not None:
        return Release(False, existing)

    entry = DroppedAccessNumber(
        access_number=number,
        class_name=student.class_name,
        stream_name=student.stream,
        dropped_at=school_now_naive(),
        reason=reason,
    )
    db.session.add(entry)
    logger.info("Added %s to dropped access numbers (%s)", number, reason)
    return Release(False, entry)
