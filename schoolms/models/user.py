import bcrypt
from flask_login import UserMixin
from sqlalchemy import Column, Integer, String, DateTime, Boolean

from schoolms.extensions import db
from schoolms.utils.timezone import school_now_naive

ADMIN_ROLES = ('ADMIN', 'SUPERUSER')


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    email = Column(String(120), unique=True, nullable=False)
    password_hash = Column(String(128), nullable=False)
    role = Column(String(32), nullable=False)  # stored upper-case: 'ADMIN', 'TEACHER', 'OVERSEER', ...
    status = Column(String(20), nullable=False, default='ACTIVE')
    phone = Column(String(32), nullable=True)
    gender = Column(String(16), nullable=True)

    # Lockout bookkeeping
    password_attempts = Column(Integer, nullable=False, default=0)
    last_password_attempt = Column(DateTime, nullable=True)
    locked_until = Column(DateTime, nullable=True)
    account_locked = Column(Boolean, nullable=False, default=False)
    lock_reason = Column(String(255), nullable=True)
    first_time_login = Column(Boolean, nullable=False, default=False)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=school_now_naive)
    updated_at = Column(DateTime, default=school_now_naive, onupdate=school_now_naive)

    def set_password(self, password):
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))

    @property
    def is_admin(self):
        return (self.role or '').upper() in ADMIN_ROLES

    def __repr__(self):
        return f'<User {self.id}: {self.email} ({self.role})>'
