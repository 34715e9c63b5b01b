"""Fee calculation for student admission.

Every class has a base amount (tuition and the other non-boarding items of
its fee structure) and a boarding surcharge that only boarders pay.
"""
from dataclasses import dataclass

from flask import current_app

from schoolms.models import FeeStructure

DAY = 'Day'
BOARDING = 'Boarding'
DEFAULT_SCHEDULE_KEY = 'Default'


@dataclass(frozen=True)
class FeeSchedule:
    base: float = 0.0
    boarding_surcharge: float = 0.0


@dataclass(frozen=True)
class FeeBreakdown:
    base_tuition: float
    boarding_fee: float
    total_fees: float
    residence_type: str

    @property
    def has_boarding(self):
        return self.residence_type == BOARDING

    def to_dict(self):
        return {
            'baseTuition': self.base_tuition,
            'boardingFee': self.boarding_fee,
            'totalFees': self.total_fees,
            'residenceType': self.residence_type,
            'hasBoarding': self.has_boarding,
        }


def normalize_residence(residence_type):
    if residence_type and str(residence_type).strip().lower() == 'boarding':
        return BOARDING
    return DAY


def is_boarding_item(label):
    return 'board' in (label or '').strip().lower()


def get_student_fee_breakdown(class_name, residence_type, schedules):
    """Pure fee lookup: base amount plus the boarding surcharge for boarders.

    ``schedules`` maps class names to FeeSchedule; a ``Default`` entry is used
    for classes without their own schedule.
    """
    schedule = schedules.get(class_name) or schedules.get(DEFAULT_SCHEDULE_KEY) or FeeSchedule()
    residence = normalize_residence(residence_type)
    boarding_fee = schedule.boarding_surcharge if residence == BOARDING else 0.0
    return FeeBreakdown(
        base_tuition=schedule.base,
        boarding_fee=boarding_fee,
        total_fees=schedule.base + boarding_fee,
        residence_type=residence,
    )


def calculate_student_fees(class_name, residence_type, schedules):
    return get_student_fee_breakdown(class_name, residence_type, schedules).total_fees


def filter_fee_items_by_residence(items, residence_type):
    """Drop boarding items from a fee item list unless the student boards.

    Items are dicts carrying ``feeName`` (or ``name``) and ``amount``.
    Returns ``(items, total)``.
    """
    items = list(items or [])
    if normalize_residence(residence_type) == DAY:
        items = [item for item in items if not is_boarding_item(item.get('feeName') or item.get('name'))]
    total = sum(float(item.get('amount') or 0) for item in items)
    return items, total


def load_fee_schedule(class_name, term=None, year=None):
    """Build the FeeSchedule of a class from its active fee structure rows.

    Without a boarding item the configured BOARDING_FEE is the surcharge.
    """
    query = FeeStructure.query.filter_by(class_name=class_name, is_active=True)
    if term and year:
        query = query.filter_by(term=term, year=year)

    base = 0.0
    boarding = 0.0
    has_boarding_item = False
    for row in query.all():
        if is_boarding_item(row.fee_name):
            boarding += float(row.amount or 0)
            has_boarding_item = True
        else:
            base += float(row.amount or 0)

    if not has_boarding_item:
        boarding = float(current_app.config.get('BOARDING_FEE', 0))

    return FeeSchedule(base=base, boarding_surcharge=boarding)


def fees_for_admission(class_name, residence_type):
    schedules = {class_name: load_fee_schedule(class_name)}
    return get_student_fee_breakdown(class_name, residence_type, schedules)
