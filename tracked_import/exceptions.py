class AppError(Exception):
    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(AppError):
    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} '{resource_id}' not found", code="NOT_FOUND")


class ValidationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")


class ConflictError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="CONFLICT")


class UnauthorizedError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="UNAUTHORIZED")


class SourceError(AppError):
    """The input file is missing or its top-level shape is unusable."""

    def __init__(self, message: str):
        super().__init__(message, code="SOURCE_ERROR")


class ConfigurationError(AppError):
    """The run was configured with an unknown entity kind or format."""

    def __init__(self, message: str):
        super().__init__(message, code="CONFIGURATION_ERROR")


class PersistenceError(AppError):
    """A storage write was rejected or could not be completed."""

    def __init__(self, message: str):
        super().__init__(message, code="PERSISTENCE_ERROR")


class ForbiddenError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="FORBIDDEN")
