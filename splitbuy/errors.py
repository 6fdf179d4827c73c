"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class ForbiddenError(AppError):
    """Raised when the caller's role does not allow the action."""

    def __init__(self, message="Unauthorized"):
        """Initialize the error."""
        super().__init__(message, 403)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class InvalidStateError(AppError):
    """Raised when an action is not legal for the current workflow status."""

    def __init__(self, message="Action not allowed in the current state."):
        """Initialize the error."""
        super().__init__(message, 409)


class AlreadyDoneError(AppError):
    """Raised when a one-time action is replayed."""

    def __init__(self, message="Action has already been performed."):
        """Initialize the error."""
        super().__init__(message, 409)
