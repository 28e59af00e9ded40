class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class SessionValidationError(AppError):
    """Raised when a required field is missing or malformed."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)


class UnresolvedReferenceError(AppError):
    """Raised when a name or id does not resolve to a known board, class, subject, teacher or student."""
    def __init__(self, reference_type: str, value: str, message: str | None = None):
        super().__init__(
            message or f"{reference_type} '{value}' not found",
            status_code=422,
            details={"reference_type": reference_type, "value": value},
        )
        self.reference_type = reference_type
        self.value = value


class InvalidTransitionError(AppError):
    """Raised when a lifecycle action is not allowed from the session's current status."""
    def __init__(self, session_id: str, current_status: str, action: str):
        super().__init__(
            f"Cannot {action} session {session_id} while it is {current_status}",
            status_code=409,
            details={"session_id": session_id, "current_status": current_status, "action": action},
        )
        self.current_status = current_status
        self.action = action


class PersistenceError(AppError):
    """Raised when the store layer fails to persist a change."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=500, details=details)


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)


class ImportFormatError(AppError):
    """Raised when an uploaded file cannot be read as a session import workbook."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)
