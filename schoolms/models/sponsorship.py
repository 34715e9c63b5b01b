from schoolms.extensions import db
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Text
from schoolms.utils.timezone import school_now_naive


class Sponsorship(db.Model):
    __tablename__ = 'sponsorships'

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey('students.id'), nullable=False, index=True)
    sponsor_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    sponsor_name = Column(String(128), nullable=False)
    sponsor_country = Column(String(64), default='Uganda')
    amount = Column(Float, nullable=False)
    type = Column(String(32), default='individual')
    status = Column(String(32), nullable=False, default='pending')
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    description = Column(Text, default='')
    created_at = Column(DateTime, default=school_now_naive)
    updated_at = Column(DateTime, default=school_now_naive, onupdate=school_now_naive)

    student = db.relationship('Student', backref=db.backref('sponsorships', lazy=True, cascade='all, delete-orphan'))
