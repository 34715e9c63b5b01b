"""
Timezone utility for the school's local time (East Africa Time by default).
All datetime operations should use functions from this module so that
timestamps written by different routes agree with each other.
"""
from datetime import datetime
import pytz

DEFAULT_TIMEZONE = 'Africa/Kampala'


def get_school_timezone():
    """
    Resolve the configured school timezone.

    Falls back to Africa/Kampala outside an application context.
    """
    try:
        from flask import current_app
        name = current_app.config.get('SCHOOL_TIMEZONE', DEFAULT_TIMEZONE)
    except RuntimeError:
        name = DEFAULT_TIMEZONE
    return pytz.timezone(name)


def school_now():
    """
    Get current datetime in the school timezone.

    Returns:
        datetime: Current datetime with timezone awareness
    """
    return datetime.now(get_school_timezone())


def school_now_naive():
    """
    Get current school-local datetime as naive (no timezone info).
    Database columns are naive, so this is what models default to.
    """
    return school_now().replace(tzinfo=None)
