from schoolms.extensions import db
from schoolms.models.user import User
from schoolms.models.notification import Notification
from schoolms.models.student import Student
from schoolms.models.dropped_access_number import DroppedAccessNumber
from schoolms.models.attendance import Attendance
from schoolms.models.sponsorship import Sponsorship
from schoolms.models.fee_structure import FeeStructure

__all__ = [
    'db',
    'User',
    'Notification',
    'Student',
    'DroppedAccessNumber',
    'Attendance',
    'Sponsorship',
    'FeeStructure',
]
