"""Custom exceptions for the sale flyers application."""


class FlyerAppError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class ValidationError(FlyerAppError):
    """Raised for rule violations caught before anything reaches the database."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class NotFoundError(FlyerAppError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class PermissionDeniedError(FlyerAppError):
    """Raised when the backend rejects an operation on policy grounds."""
    def __init__(self, message="You don't have permission to perform this action."):
        super().__init__(message, 403)


class BackendError(FlyerAppError):
    """Raised when the data backend or blob storage fails."""
    def __init__(self, message, payload=None):
        super().__init__(message, 502, payload)


class FlyerExportError(FlyerAppError):
    """Raised when a flyer could not be turned into a document."""
    def __init__(self, message="Flyer generation failed", payload=None):
        super().__init__(message, 500, payload)


PERMISSION_MESSAGE = "You don't have permission to perform this action."


def describe_backend_error(error) -> str:
    """
    Turn a backend failure into a message fit for a toast.

    Policy rejections and constraint violations get a friendlier wording,
    anything else passes through untouched.
    """
    if isinstance(error, FlyerAppError):
        raw = error.message
    else:
        raw = str(getattr(error, 'orig', None) or error)

    lowered = raw.lower()
    if 'row-level security' in lowered or 'permission denied' in lowered:
        return PERMISSION_MESSAGE
    if 'violates' in lowered:
        return f"The data provided is invalid: {raw}"
    return raw


def translate_backend_error(error) -> FlyerAppError:
    """Map a raw backend exception onto the application hierarchy."""
    if isinstance(error, FlyerAppError):
        return error

    message = describe_backend_error(error)
    if message == PERMISSION_MESSAGE:
        return PermissionDeniedError(message)
    if message.startswith('The data provided is invalid'):
        return ValidationError(message)
    return BackendError(message)
