from schoolms.extensions import db
from schoolms.utils.timezone import school_now_naive

ACTIVE = 'active'
RE_ADMITTED = 're-admitted'

# Real access numbers may only be held by one active student at a time.
# Placeholder numbers handed to overseer pupils are excluded.
_ACTIVE_REAL_NUMBER = "status = 'active' AND substr(access_number, 1, 5) <> 'None-'"


class Student(db.Model):
    __tablename__ = 'students'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    access_number = db.Column(db.String(64), index=True)  # e.g. BA01, or None-... for overseer pupils
    admission_id = db.Column(db.String(64), unique=True)  # e.g. S25A01
    nin = db.Column(db.String(32), default='')
    lin = db.Column(db.String(32), default='')
    date_of_birth = db.Column(db.String(20), default='')
    age = db.Column(db.Integer, nullable=False, default=0)
    gender = db.Column(db.String(16), default='')
    residence_type = db.Column(db.String(16), nullable=True)  # 'Day' or 'Boarding'
    phone = db.Column(db.String(32), default='')
    email = db.Column(db.String(120), default='')
    class_name = db.Column('class', db.String(32), nullable=False, index=True)
    stream = db.Column(db.String(32), nullable=True, index=True)

    # Sponsorship
    needs_sponsorship = db.Column(db.Boolean, default=False)
    sponsorship_status = db.Column(db.String(40), default='awaiting')
    sponsorship_story = db.Column(db.Text, default='')
    class_completion = db.Column(db.String(64), default='')
    career_aspiration = db.Column(db.String(128), default='')

    # Parent / guardian
    parent_name = db.Column(db.String(128), default='')
    parent_phone = db.Column(db.String(32), default='')
    parent_email = db.Column(db.String(120), default='')
    parent_address = db.Column(db.String(255), default='')
    parent_occupation = db.Column(db.String(128), default='')
    parent_relationship = db.Column(db.String(64), default='')

    # Fees
    total_fees = db.Column(db.Float, default=0.0)
    fees_paid = db.Column(db.Float, default=0.0)
    fee_balance = db.Column(db.Float, default=0.0)
    individual_fee = db.Column(db.Float, nullable=True)

    conduct_notes = db.Column(db.JSON, default=list)
    status = db.Column(db.String(20), nullable=False, default=ACTIVE, index=True)
    flag_comment = db.Column(db.String(500), default='')
    admitted_by = db.Column(db.String(20), default='admin')

    created_at = db.Column(db.DateTime, default=school_now_naive)
    updated_at = db.Column(db.DateTime, default=school_now_naive, onupdate=school_now_naive)

    __table_args__ = (
        db.Index(
            'uq_students_active_access_number',
            'access_number',
            unique=True,
            postgresql_where=db.text(_ACTIVE_REAL_NUMBER),
            sqlite_where=db.text(_ACTIVE_REAL_NUMBER),
        ),
    )

    def __repr__(self):
        return f'<Student {self.id}: {self.name} ({self.access_number})>'
