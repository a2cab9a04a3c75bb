class ServiceError(Exception):
    status = 400

    def __init__(self, code="SERVICE_ERROR", message="Service error", details=None, status=None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status is not None:
            self.status = status
        super().__init__(message)


class BadRequestError(ServiceError):
    status = 400

    def __init__(self, message, code="VALIDATION_ERROR", details=None):
        super().__init__(code=code, message=message, details=details)


class UnauthorizedError(ServiceError):
    status = 401

    def __init__(self, message="Authentication required", code="UNAUTHORIZED", details=None):
        super().__init__(code=code, message=message, details=details)


class ForbiddenError(ServiceError):
    status = 403

    def __init__(self, message="Not authorized", code="FORBIDDEN", details=None):
        super().__init__(code=code, message=message, details=details)


class NotFoundError(ServiceError):
    status = 404

    def __init__(self, message="Resource not found", code="NOT_FOUND", details=None):
        super().__init__(code=code, message=message, details=details)
