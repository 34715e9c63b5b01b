"""Initial schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_REAL_NUMBER = "status = 'active' AND substr(access_number, 1, 5) <> 'None-'"


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=128), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='ACTIVE'),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('gender', sa.String(length=16), nullable=True),
        sa.Column('password_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_password_attempt', sa.DateTime(), nullable=True),
        sa.Column('locked_until', sa.DateTime(), nullable=True),
        sa.Column('account_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('lock_reason', sa.String(length=255), nullable=True),
        sa.Column('first_time_login', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(length=128), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False, server_default='INFO'),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)

    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('access_number', sa.String(length=64), nullable=True),
        sa.Column('admission_id', sa.String(length=64), nullable=True, unique=True),
        sa.Column('nin', sa.String(length=32), nullable=True),
        sa.Column('lin', sa.String(length=32), nullable=True),
        sa.Column('date_of_birth', sa.String(length=20), nullable=True),
        sa.Column('age', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('gender', sa.String(length=16), nullable=True),
        sa.Column('residence_type', sa.String(length=16), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=120), nullable=True),
        sa.Column('class', sa.String(length=32), nullable=False),
        sa.Column('stream', sa.String(length=32), nullable=True),
        sa.Column('needs_sponsorship', sa.Boolean(), nullable=True),
        sa.Column('sponsorship_status', sa.String(length=40), nullable=True),
        sa.Column('sponsorship_story', sa.Text(), nullable=True),
        sa.Column('class_completion', sa.String(length=64), nullable=True),
        sa.Column('career_aspiration', sa.String(length=128), nullable=True),
        sa.Column('parent_name', sa.String(length=128), nullable=True),
        sa.Column('parent_phone', sa.String(length=32), nullable=True),
        sa.Column('parent_email', sa.String(length=120), nullable=True),
        sa.Column('parent_address', sa.String(length=255), nullable=True),
        sa.Column('parent_occupation', sa.String(length=128), nullable=True),
        sa.Column('parent_relationship', sa.String(length=64), nullable=True),
        sa.Column('total_fees', sa.Float(), nullable=True),
        sa.Column('fees_paid', sa.Float(), nullable=True),
        sa.Column('fee_balance', sa.Float(), nullable=True),
        sa.Column('individual_fee', sa.Float(), nullable=True),
        sa.Column('conduct_notes', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('flag_comment', sa.String(length=500), nullable=True),
        sa.Column('admitted_by', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_students_name'), 'students', ['name'], unique=False)
    op.create_index(op.f('ix_students_access_number'), 'students', ['access_number'], unique=False)
    op.create_index(op.f('ix_students_class'), 'students', ['class'], unique=False)
    op.create_index(op.f('ix_students_stream'), 'students', ['stream'], unique=False)
    op.create_index(op.f('ix_students_status'), 'students', ['status'], unique=False)
    op.create_index(
        'uq_students_active_access_number',
        'students',
        ['access_number'],
        unique=True,
        postgresql_where=sa.text(ACTIVE_REAL_NUMBER),
        sqlite_where=sa.text(ACTIVE_REAL_NUMBER),
    )

    op.create_table(
        'dropped_access_numbers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('access_number', sa.String(length=64), nullable=False),
        sa.Column('class_name', sa.String(length=32), nullable=False),
        sa.Column('stream_name', sa.String(length=32), nullable=True),
        sa.Column('dropped_at', sa.DateTime(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
    )
    op.create_index(op.f('ix_dropped_access_numbers_access_number'), 'dropped_access_numbers',
                    ['access_number'], unique=False)
    op.create_index('ix_dropped_access_numbers_class_stream', 'dropped_access_numbers',
                    ['class_name', 'stream_name'], unique=False)

    op.create_table(
        'attendance',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.String(length=32), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.String(length=20), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('teacher_id', sa.String(length=32), nullable=False),
        sa.Column('teacher_name', sa.String(length=120), nullable=False),
        sa.Column('remarks', sa.String(length=500), nullable=True),
        sa.Column('notification_sent', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_attendance_student_id'), 'attendance', ['student_id'], unique=False)
    op.create_index(op.f('ix_attendance_date'), 'attendance', ['date'], unique=False)

    op.create_table(
        'sponsorships',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('sponsor_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('sponsor_name', sa.String(length=128), nullable=False),
        sa.Column('sponsor_country', sa.String(length=64), nullable=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_sponsorships_student_id'), 'sponsorships', ['student_id'], unique=False)

    op.create_table(
        'fee_structures',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('class_name', sa.String(length=32), nullable=False),
        sa.Column('fee_name', sa.String(length=128), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('frequency', sa.String(length=32), nullable=True),
        sa.Column('term', sa.String(length=32), nullable=True),
        sa.Column('year', sa.String(length=9), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_fee_structures_class_name'), 'fee_structures', ['class_name'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_fee_structures_class_name'), table_name='fee_structures')
    op.drop_table('fee_structures')

    op.drop_index(op.f('ix_sponsorships_student_id'), table_name='sponsorships')
    op.drop_table('sponsorships')

    op.drop_index(op.f('ix_attendance_date'), table_name='attendance')
    op.drop_index(op.f('ix_attendance_student_id'), table_name='attendance')
    op.drop_table('attendance')

    op.drop_index('ix_dropped_access_numbers_class_stream', table_name='dropped_access_numbers')
    op.drop_index(op.f('ix_dropped_access_numbers_access_number'), table_name='dropped_access_numbers')
    op.drop_table('dropped_access_numbers')

    op.drop_index('uq_students_active_access_number', table_name='students')
    op.drop_index(op.f('ix_students_status'), table_name='students')
    op.drop_index(op.f('ix_students_stream'), table_name='students')
    op.drop_index(op.f('ix_students_class'), table_name='students')
    op.drop_index(op.f('ix_students_access_number'), table_name='students')
    op.drop_index(op.f('ix_students_name'), table_name='students')
    op.drop_table('students')

    op.drop_index(op.f('ix_notifications_user_id'), table_name='notifications')
    op.drop_table('notifications')

    op.drop_table('users')
