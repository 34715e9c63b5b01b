import secrets

from flask import Blueprint, request, jsonify, current_app
from flask_login import current_user

from schoolms.decorators import admin_required
from schoolms.extensions import db
from schoolms.models import User, Notification
from schoolms.routes.auth import serialize_user
from schoolms.utils.timezone import school_now_naive

users_bp = Blueprint('users', __name__, url_prefix='/api/users')


def _get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        return None, (jsonify({'success': False, 'message': 'User not found'}), 404)
    return user, None


@users_bp.route('/', methods=['GET'], strict_slashes=False)
@admin_required
def get_users():
    try:
        users = User.query.order_by(User.name).all()
        return jsonify({'success': True, 'users': [serialize_user(u) for u in users]})
    except Exception as e:
        current_app.logger.error(f"Error fetching users: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to fetch users'}), 500


@users_bp.route('/<int:user_id>', methods=['GET'])
@admin_required
def get_user(user_id):
    user, error = _get_user_or_404(user_id)
    if error:
        return error
    return jsonify({'success': True, 'user': serialize_user(user)})


@users_bp.route('/<int:user_id>', methods=['PUT'])
@admin_required
def update_user(user_id):
    try:
        user, error = _get_user_or_404(user_id)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        if 'email' in data:
            email = (data.get('email') or '').strip().lower()
            if not email:
                return jsonify({'success': False, 'message': 'Email cannot be empty'}), 400
            taken = User.query.filter(db.func.lower(User.email) == email, User.id != user.id).first()
            if taken:
                return jsonify({'success': False, 'message': 'Email already in use'}), 400
            user.email = email
        if data.get('name'):
            user.name = data['name'].strip()
        if data.get('role'):
            user.role = data['role'].strip().upper()
        if data.get('status'):
            user.status = data['status'].strip().upper()
        for key in ('phone', 'gender'):
            if key in data:
                setattr(user, key, data[key])

        db.session.commit()
        return jsonify({'success': True, 'message': 'User updated successfully', 'user': serialize_user(user)})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating user: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to update user'}), 500


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    try:
        user, error = _get_user_or_404(user_id)
        if error:
            return error
        if user.id == current_user.id:
            return jsonify({'success': False, 'message': 'You cannot delete your own account'}), 400

        db.session.delete(user)
        db.session.commit()
        current_app.logger.info(f"Deleted user {user.email}")
        return jsonify({'success': True, 'message': 'User deleted successfully'})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting user: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to delete user'}), 500


@users_bp.route('/<int:user_id>/lock', methods=['POST'])
@admin_required
def lock_user(user_id):
    try:
        user, error = _get_user_or_404(user_id)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        user.account_locked = True
        user.lock_reason = data.get('reason') or 'Locked by administrator'
        db.session.commit()
        current_app.logger.info(f"Locked account {user.email}: {user.lock_reason}")
        return jsonify({'success': True, 'message': 'User account locked', 'user': serialize_user(user)})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error locking user: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to lock user'}), 500


@users_bp.route('/<int:user_id>/unlock', methods=['POST'])
@admin_required
def unlock_user(user_id):
    try:
        user, error = _get_user_or_404(user_id)
        if error:
            return error

        user.account_locked = False
        user.lock_reason = None
        user.locked_until = None
        user.password_attempts = 0
        user.last_password_attempt = None
        db.session.commit()
        return jsonify({'success': True, 'message': 'User account unlocked', 'user': serialize_user(user)})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error unlocking user: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to unlock user'}), 500


@users_bp.route('/<int:user_id>/reset-password', methods=['POST'])
@admin_required
def reset_password(user_id):
    """Issue a temporary password; the user must change it on next login."""
    try:
        user, error = _get_user_or_404(user_id)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        temporary_password = data.get('temporaryPassword') or secrets.token_urlsafe(9)
        user.set_password(temporary_password)
        user.first_time_login = True
        user.account_locked = False
        user.lock_reason = None
        user.locked_until = None
        user.password_attempts = 0
        user.last_password_attempt = None
        user.updated_at = school_now_naive()
        db.session.commit()

        return jsonify({
            'success': True,
            'message': 'Password reset successfully',
            'temporaryPassword': temporary_password,
        })
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error resetting password: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to reset password'}), 500


@users_bp.route('/<int:user_id>/notifications', methods=['GET'])
@admin_required
def get_user_notifications(user_id):
    user, error = _get_user_or_404(user_id)
    if error:
        return error

    notifications = Notification.query.filter_by(user_id=user.id).order_by(
        Notification.created_at.desc(), Notification.id.desc()).all()
    return jsonify({
        'success': True,
        'notifications': [{
            'id': n.id,
            'title': n.title,
            'message': n.message,
            'type': n.type,
            'read': n.read,
            'createdAt': n.created_at.isoformat() if n.created_at else None,
        } for n in notifications],
    })
