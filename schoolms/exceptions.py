"""Exceptions raised by the admission workflow and mapped to HTTP responses by the routes."""


class SchoolMSError(Exception):
    status_code = 500

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'success': False, 'message': self.message}
        payload.update(self.details)
        return payload


class ValidationError(SchoolMSError):
    status_code = 400


class AccessNumberTaken(SchoolMSError):
    status_code = 400


class AdmissionIdTaken(SchoolMSError):
    status_code = 400


class AccessNumberConflict(SchoolMSError):
    """Another admission claimed the generated access number first.

    The whole request can be retried by the client.
    """
    status_code = 500

    def __init__(self, message='Access number conflict detected, please try again', **details):
        details.setdefault('retryable', True)
        super().__init__(message, **details)
