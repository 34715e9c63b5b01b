"""Bearer token helpers built on python-jose."""
import logging
from datetime import datetime, timedelta, timezone

from flask import current_app
from jose import JWTError, jwt

logger = logging.getLogger(__name__)


def create_access_token(user):
    now = datetime.now(timezone.utc)
    expires = now + timedelta(hours=current_app.config['JWT_EXPIRES_HOURS'])
    claims = {
        'sub': str(user.id),
        'email': user.email,
        'role': user.role,
        'iat': int(now.timestamp()),
        'exp': int(expires.timestamp()),
    }
    return jwt.encode(claims, current_app.config['JWT_SECRET_KEY'],
                      algorithm=current_app.config['JWT_ALGORITHM'])


def decode_access_token(token):
    """Return the token claims, or None when the token is invalid or expired."""
    try:
        return jwt.decode(token, current_app.config['JWT_SECRET_KEY'],
                          algorithms=[current_app.config['JWT_ALGORITHM']])
    except JWTError as exc:
        logger.debug("Rejected bearer token: %s", exc)
        return None


def bearer_token(header_value):
    if not header_value:
        return None
    scheme, _, token = header_value.partition(' ')
    if scheme.lower() != 'bearer' or not token:
        return None
    return token.strip()
