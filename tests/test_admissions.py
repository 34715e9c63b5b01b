from datetime import datetime

import pytest

from schoolms.extensions import db
from schoolms.models import Student
from schoolms.utils.admissions import admission_prefix, generate_admission_id, month_code

SEPTEMBER_2025 = datetime(2025, 9, 15, 10, 30)


@pytest.mark.parametrize('month, expected', [
    (1, 'Ja'), (2, 'F'), (3, 'Mh'), (4, 'Al'), (5, 'My'), (6, 'Je'),
    (7, 'Jy'), (8, 'At'), (9, 'S'), (10, 'O'), (11, 'N'), (12, 'D'),
])
def test_month_codes(month, expected):
    assert month_code(month) == expected


def test_month_codes_are_unique():
    codes = [month_code(month) for month in range(1, 13)]
    assert len(set(codes)) == 12


def test_admission_prefix():
    assert admission_prefix(SEPTEMBER_2025) == 'S25'
    assert admission_prefix(datetime(2026, 3, 1)) == 'Mh26'


class TestGenerateAdmissionId:
    def test_first_admission_of_the_month(self, app):
        assert generate_admission_id('Senior 1', now=SEPTEMBER_2025) == 'S25A01'

    def test_sequence_runs_across_classes(self, app):
        db.session.add(Student(name='Amina', admission_id='S25B03', age=15, class_name='Senior 2'))
        db.session.add(Student(name='Brian', admission_id='S25A01', age=14, class_name='Senior 1'))
        db.session.commit()
        assert generate_admission_id('Senior 1', now=SEPTEMBER_2025) == 'S25A04'

    def test_other_months_do_not_count(self, app):
        db.session.add(Student(name='Amina', admission_id='O25A07', age=15, class_name='Senior 1'))
        db.session.commit()
        assert generate_admission_id('Senior 3', now=SEPTEMBER_2025) == 'S25C01'

    def test_unknown_class_uses_x(self, app):
        assert generate_admission_id('Primary 7', now=SEPTEMBER_2025) == 'S25X01'
