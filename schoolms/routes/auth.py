from datetime import timedelta

from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user, login_required

from schoolms.extensions import db, limiter
from schoolms.models import User, Notification
from schoolms.models.user import ADMIN_ROLES
from schoolms.utils.timezone import school_now_naive
from schoolms.utils.tokens import create_access_token

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def serialize_user(user):
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'status': user.status,
        'phone': user.phone,
        'gender': user.gender,
        'accountLocked': user.account_locked,
        'lockedUntil': user.locked_until.isoformat() if user.locked_until else None,
        'lockReason': user.lock_reason,
        'passwordAttempts': user.password_attempts or 0,
        'firstTimeLogin': user.first_time_login,
        'lastLogin': user.last_login.isoformat() if user.last_login else None,
        'createdAt': user.created_at.isoformat() if user.created_at else None,
    }


def _reset_lock_state(user):
    user.password_attempts = 0
    user.last_password_attempt = None
    user.locked_until = None
    user.account_locked = False
    user.lock_reason = None


def _notify_admins_of_lockout(user):
    admins = User.query.filter(db.func.upper(User.role).in_(ADMIN_ROLES), User.id != user.id).all()
    for admin in admins:
        db.session.add(Notification(
            user_id=admin.id,
            title='Account locked',
            message=f'{user.name} ({user.email}) was locked out after too many failed login attempts.',
            type='SECURITY',
        ))
    return len(admins)


@auth_bp.route('/register', methods=['POST'])
def register():
    try:
        data = request.get_json(silent=True) or {}
        name = (data.get('name') or '').strip()
        email = (data.get('email') or '').strip().lower()
        password = data.get('password') or ''
        role = (data.get('role') or '').strip().upper()

        if not name or not email or not password or not role:
            return jsonify({'success': False, 'message': 'Name, email, password and role are required'}), 400

        # Only an existing admin may create another admin
        if role in ADMIN_ROLES and not (current_user.is_authenticated and current_user.is_admin):
            return jsonify({'error': 'Unauthorized', 'message': 'Only an administrator can register admin users'}), 403

        if User.query.filter(db.func.lower(User.email) == email).first():
            return jsonify({'success': False, 'message': 'User already exists'}), 400

        user = User(
            name=name,
            email=email,
            role=role,
            phone=data.get('phone'),
            gender=data.get('gender'),
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()

        current_app.logger.info(f"Registered user {user.email} as {user.role}")
        return jsonify({'success': True, 'message': 'User registered successfully', 'user': serialize_user(user)}), 201
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error registering user: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to register user'}), 500


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(lambda: current_app.config['LOGIN_RATE_LIMIT'])
def login():
    """Password login with attempt counting and a timed lockout."""
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        return jsonify({'success': False, 'message': 'Email and password are required'}), 400

    try:
        user = User.query.filter(db.func.lower(User.email) == email).first()
        if not user:
            return jsonify({'success': False, 'message': 'Invalid credentials'}), 401

        now = school_now_naive()
        max_attempts = current_app.config['MAX_PASSWORD_ATTEMPTS']
        lock_window = timedelta(minutes=current_app.config['PASSWORD_LOCK_MINUTES'])

        if user.account_locked:
            return jsonify({
                'success': False,
                'message': 'Account is locked. Contact an administrator.',
                'lockReason': user.lock_reason,
            }), 423

        if user.locked_until and user.locked_until > now:
            minutes_left = max(1, int((user.locked_until - now).total_seconds() // 60) + 1)
            return jsonify({
                'success': False,
                'message': f'Too many failed attempts. Try again in {minutes_left} minute(s).',
                'lockedUntil': user.locked_until.isoformat(),
            }), 423

        if (user.password_attempts or 0) >= max_attempts:
            if user.last_password_attempt and now - user.last_password_attempt < lock_window:
                return jsonify({
                    'success': False,
                    'message': 'Too many failed attempts. Please try again later.',
                }), 423
            # Lock window has passed
            _reset_lock_state(user)

        if not user.check_password(password):
            user.password_attempts = (user.password_attempts or 0) + 1
            user.last_password_attempt = now
            remaining = max(0, max_attempts - user.password_attempts)
            if user.password_attempts >= max_attempts:
                user.locked_until = now + lock_window
                notified = _notify_admins_of_lockout(user)
                current_app.logger.warning(
                    f"Locked {user.email} after {user.password_attempts} failed attempts; notified {notified} admin(s)"
                )
            db.session.commit()
            return jsonify({
                'success': False,
                'message': 'Invalid credentials',
                'attemptsRemaining': remaining,
            }), 401

        _reset_lock_state(user)
        user.last_login = now
        db.session.commit()

        if user.first_time_login:
            return jsonify({
                'success': True,
                'message': 'Password change required',
                'requiresPasswordChange': True,
                'user': serialize_user(user),
            })

        return jsonify({
            'success': True,
            'message': 'Login successful',
            'token': create_access_token(user),
            'user': serialize_user(user),
        })
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error during login: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Login failed'}), 500


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'success': True, 'user': serialize_user(current_user)})


@auth_bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    try:
        data = request.get_json(silent=True) or {}
        current_password = data.get('currentPassword') or ''
        new_password = data.get('newPassword') or ''

        if not current_password or not new_password:
            return jsonify({'success': False, 'message': 'Current and new password are required'}), 400
        if not current_user.check_password(current_password):
            return jsonify({'success': False, 'message': 'Current password is incorrect'}), 400

        current_user.set_password(new_password)
        current_user.first_time_login = False
        db.session.commit()
        return jsonify({'success': True, 'message': 'Password changed successfully'})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error changing password: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to change password'}), 500
