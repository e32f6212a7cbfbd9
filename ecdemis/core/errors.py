# ecdemis/core/errors.py
"""
Domain errors raised by the service layer.

Each carries the HTTP status the API answers with; ecdemis.main installs a
single handler that turns them into {"detail": ...} responses.
"""


class EcdemisError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EcdemisError):
    """A required field is missing or malformed"""
    status_code = 400

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = fields or []


class InvalidTransitionError(ValidationError):
    """The record is not in a state that allows the requested change"""
    status_code = 409


class NotFoundError(EcdemisError):
    status_code = 404


class FetchError(EcdemisError):
    """Reading from the record store failed"""
    status_code = 503


class ExhaustedError(EcdemisError):
    """No unused UPI sequence number is left for an institution code"""
    status_code = 409


class ConflictError(EcdemisError):
    """Duplicate UPI detected at write time"""
    status_code = 409


class StorageError(EcdemisError):
    status_code = 502
