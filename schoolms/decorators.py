from functools import wraps
from flask import jsonify, request
from flask_login import current_user


def require_login():
    """Blueprint-level guard: every endpoint of the blueprint needs a bearer token.

    CORS preflight requests carry no Authorization header and are let through.
    """
    if request.method == 'OPTIONS':
        return None
    if not current_user.is_authenticated:
        return jsonify({'success': False, 'message': 'Authentication required'}), 401
    return None


def admin_required(f):
    """Decorate routes to require admin role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'message': 'Authentication required'}), 401
        if not current_user.is_admin:
            return jsonify({'error': 'Unauthorized', 'message': 'This endpoint requires admin privileges'}), 403
        return f(*args, **kwargs)
    return decorated_function


def roles_required(*roles):
    """Decorate routes to require one of the given roles (case-insensitive)."""
    allowed = {role.upper() for role in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'message': 'Authentication required'}), 401
            if not current_user.is_admin and (current_user.role or '').upper() not in allowed:
                return jsonify({'error': 'Unauthorized',
                                'message': f'This endpoint requires one of: {", ".join(sorted(allowed))}'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
