from schoolms.extensions import db
from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean
from schoolms.utils.timezone import school_now_naive


class FeeStructure(db.Model):
    """One fee item billed to every student of a class, e.g. 'Tuition' or 'Boarding Fee'."""
    __tablename__ = 'fee_structures'

    id = Column(Integer, primary_key=True)
    class_name = Column(String(32), nullable=False, index=True)
    fee_name = Column(String(128), nullable=False)
    amount = Column(Float, nullable=False, default=0.0)
    frequency = Column(String(32), default='')
    term = Column(String(32), nullable=True)
    year = Column(String(9), nullable=True)
    description = Column(String(500), default='')
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=school_now_naive)
    updated_at = Column(DateTime, default=school_now_naive, onupdate=school_now_naive)
