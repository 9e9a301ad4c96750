"""Service-layer exceptions mapped to HTTP status codes in main.py."""


class ServiceError(Exception):
    """Base exception for service errors."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or ""

    def to_detail(self) -> dict:
        return {"detail": self.message}


class NotFoundError(ServiceError):
    """Resource not found."""

    status_code = 404


class ForbiddenError(ServiceError):
    """Access denied."""

    status_code = 403

    def __init__(self, message: str = "", current: int | None = None, max: int | None = None):
        super().__init__(message)
        self.current = current
        self.max = max

    def to_detail(self) -> dict:
        detail = super().to_detail()
        if self.current is not None:
            detail["current"] = self.current
            detail["max"] = self.max
        return detail


class ConflictError(ServiceError):
    """Resource already exists or is still referenced."""

    status_code = 409


class BadRequestError(ServiceError):
    """Request cannot be processed."""

    status_code = 400


class UnauthorizedError(ServiceError):
    """Authentication failed."""

    status_code = 401
