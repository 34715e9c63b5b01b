from schoolms.extensions import db
from schoolms.utils.timezone import school_now_naive


class DroppedAccessNumber(db.Model):
    """Access number freed by a student who left, parked for reuse in the same stream."""
    __tablename__ = 'dropped_access_numbers'

    id = db.Column(db.Integer, primary_key=True)
    access_number = db.Column(db.String(64), nullable=False, index=True)
    class_name = db.Column(db.String(32), nullable=False)
    stream_name = db.Column(db.String(32), nullable=True)
    dropped_at = db.Column(db.DateTime, nullable=False, default=school_now_naive)
    reason = db.Column(db.String(255), default='')

    __table_args__ = (
        db.Index('ix_dropped_access_numbers_class_stream', 'class_name', 'stream_name'),
    )

    def __repr__(self):
        return f'<DroppedAccessNumber {self.access_number} {self.class_name}/{self.stream_name}>'
