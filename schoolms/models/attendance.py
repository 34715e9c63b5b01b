from schoolms.extensions import db
from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean
from schoolms.utils.timezone import school_now_naive


class Attendance(db.Model):
    __tablename__ = 'attendance'

    id = Column(Integer, primary_key=True)
    student_id = Column(String(32), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    time = Column(String(20))
    status = Column(String(20), nullable=False)  # 'present', 'absent', 'late', 'not_marked'
    teacher_id = Column(String(32), nullable=False)
    teacher_name = Column(String(120), nullable=False)
    remarks = Column(String(500))
    notification_sent = Column(Boolean, default=False)
    created_at = Column(DateTime, default=school_now_naive)
    updated_at = Column(DateTime, default=school_now_naive, onupdate=school_now_naive)
