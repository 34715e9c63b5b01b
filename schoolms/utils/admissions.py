import re

from schoolms.models import Student
from schoolms.utils.access_numbers import class_code
from schoolms.utils.timezone import school_now

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
]

# January and July share both their first and last letters with June
MONTH_CODE_OVERRIDES = {'January': 'Ja', 'July': 'Jy'}


def month_code(month):
    """Admission-ID code for a month number (1-12).

    Months with a unique initial use it alone (``S`` for September), the
    others use first + last letter (``Mh`` for March, ``My`` for May).
    """
    name = MONTH_NAMES[month - 1]
    if name in MONTH_CODE_OVERRIDES:
        return MONTH_CODE_OVERRIDES[name]
    first = name[0]
    if sum(1 for other in MONTH_NAMES if other[0] == first) > 1:
        return first + name[-1]
    return first


def admission_prefix(now=None):
    now = now or school_now()
    return f'{month_code(now.month)}{now.year % 100:02d}'


def generate_admission_id(class_name, now=None):
    """Next admission ID, e.g. ``S25A01`` for the first Senior 1 admission of September 2025.

    The sequence runs across all classes admitted in the same month and is
    one past the highest sequence already issued, so deleting a student
    never makes an issued ID come round again.
    """
    prefix = admission_prefix(now)
    pattern = re.compile(rf'^{re.escape(prefix)}[A-Z](\d+)$')

    highest = 0
    rows = Student.query.with_entities(Student.admission_id).filter(
        Student.admission_id.like(f'{prefix}%')).all()
    for (admission_id,) in rows:
        match = pattern.match(admission_id or '')
        if match:
            highest = max(highest, int(match.group(1)))

    return f'{prefix}{class_code(class_name)}{highest + 1:02d}'
