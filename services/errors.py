"""Error taxonomy shared by the registry handlers and the client library"""


class RegisterError(Exception):
    """Base class for every register/sync failure"""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(RegisterError):
    """Missing or malformed input"""
    status_code = 400


class ImportValidationError(ValidationError):
    """A manually imported class snapshot was rejected as a whole"""


class NotFound(RegisterError):
    status_code = 404


class CodeExpired(NotFound):
    status_code = 410


class Forbidden(RegisterError):
    """Chat lock violation or unauthorized delete/lock toggle"""
    status_code = 403


class TransientNetworkError(RegisterError):
    """Transport failure, timeout or unexpected server response. Never retried automatically."""
    status_code = 503
