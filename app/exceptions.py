from typing import Optional

from fastapi import HTTPException, status


class ErrorCode:
    """Machine-readable error codes returned alongside the HTTP detail"""
    TEMPLATE_NOT_FOUND = "ERR_TEMPLATE_NOT_FOUND"
    TEMPLATE_ACCESS_DENIED = "ERR_TEMPLATE_ACCESS_DENIED"
    TEMPLATE_LINE_NOT_FOUND = "ERR_TEMPLATE_LINE_NOT_FOUND"
    TEMPLATE_LINES_INVALID_OPERATIONS = "ERR_TEMPLATE_LINES_INVALID_OPERATIONS"
    BUDGET_NOT_FOUND = "ERR_BUDGET_NOT_FOUND"
    BUDGET_ACCESS_DENIED = "ERR_BUDGET_ACCESS_DENIED"
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    INTERNAL = "ERR_INTERNAL"


class AppException(HTTPException):
    """Base application exception"""
    default_code = ErrorCode.INTERNAL

    def __init__(self, status_code: int, detail: str, code: Optional[str] = None):
        super().__init__(status_code=status_code, detail=detail)
        self.code = code or self.default_code


class NotFoundError(AppException):
    def __init__(self, detail: str = "Resource not found", code: Optional[str] = None):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail, code=code)


class ForbiddenError(AppException):
    def __init__(self, detail: str = "Access denied", code: Optional[str] = None):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail, code=code)


class UnauthorizedError(AppException):
    default_code = ErrorCode.UNAUTHORIZED

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class BadRequestError(AppException):
    def __init__(self, detail: str = "Bad request", code: Optional[str] = None):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail, code=code)


class InternalServerError(AppException):
    def __init__(self, detail: str = "Internal server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
