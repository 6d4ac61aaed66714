"""
Error Handling Module for Somity Payroll

This module provides centralized error handling with:
- Custom exception hierarchy
- Standardized error responses
- Error logging
- Account scan rejection mapping
- Database error handling
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import logging

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DataError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

from somity_payroll.schemas.payroll import AccountValidationResult, RejectionReason

# Configure logging
logger = logging.getLogger("somity_payroll.errors")


class ErrorCode(str, Enum):
    """Standardized error codes for the application"""

    # Validation Errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_FIELD = "INVALID_FIELD"
    COMPUTED_FIELD = "COMPUTED_FIELD"
    INVALID_MONTH = "INVALID_MONTH"

    # Resource Errors (404/409)
    NOT_FOUND = "NOT_FOUND"
    EMPLOYEE_NOT_FOUND = "EMPLOYEE_NOT_FOUND"
    SHEET_NOT_FOUND = "SHEET_NOT_FOUND"
    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Business Logic Errors (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    SHEET_FINALIZED = "SHEET_FINALIZED"
    ACCOUNT_ALREADY_COUNTED = "ACCOUNT_ALREADY_COUNTED"

    # Account scan rejections (422)
    ACCOUNT_OWNERSHIP_MISMATCH = "ACCOUNT_OWNERSHIP_MISMATCH"
    ACCOUNT_BRANCH_MISMATCH = "ACCOUNT_BRANCH_MISMATCH"
    ACCOUNT_DUPLICATE_IN_SHEET = "ACCOUNT_DUPLICATE_IN_SHEET"
    ACCOUNT_ALREADY_USED = "ACCOUNT_ALREADY_USED"
    ACCOUNT_BELOW_AMOUNT_FLOOR = "ACCOUNT_BELOW_AMOUNT_FLOOR"
    ACCOUNT_WINDOW_EXPIRED = "ACCOUNT_WINDOW_EXPIRED"
    ACCOUNT_ORDERING_ERROR = "ACCOUNT_ORDERING_ERROR"

    # Database Errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"

    # Internal Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


REJECTION_ERROR_CODES: Dict[RejectionReason, ErrorCode] = {
    RejectionReason.NOT_FOUND: ErrorCode.ACCOUNT_NOT_FOUND,
    RejectionReason.OWNERSHIP_MISMATCH: ErrorCode.ACCOUNT_OWNERSHIP_MISMATCH,
    RejectionReason.BRANCH_MISMATCH: ErrorCode.ACCOUNT_BRANCH_MISMATCH,
    RejectionReason.DUPLICATE_IN_SHEET: ErrorCode.ACCOUNT_DUPLICATE_IN_SHEET,
    RejectionReason.ALREADY_USED: ErrorCode.ACCOUNT_ALREADY_USED,
    RejectionReason.BELOW_AMOUNT_FLOOR: ErrorCode.ACCOUNT_BELOW_AMOUNT_FLOOR,
    RejectionReason.WINDOW_EXPIRED: ErrorCode.ACCOUNT_WINDOW_EXPIRED,
    RejectionReason.ORDERING_ERROR: ErrorCode.ACCOUNT_ORDERING_ERROR,
}


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class AppException(Exception):
    """Base exception for all application exceptions"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        self.original_error = original_error
        self.timestamp = _utc_timestamp()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        result = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.field:
            result["field"] = self.field
        if self.details:
            result["details"] = self.details
        return result


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Base validation exception"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class ComputedFieldException(ValidationException):
    """Attempt to edit a field the calculator derives"""

    def __init__(self, field: str):
        super().__init__(
            message=f"Field '{field}' is computed and cannot be edited",
            field=field,
            code=ErrorCode.COMPUTED_FIELD,
        )


class UnknownFieldException(ValidationException):
    """Attempt to edit a field the salary entry does not have"""

    def __init__(self, field: str):
        super().__init__(
            message=f"Unknown salary entry field '{field}'",
            field=field,
            code=ErrorCode.INVALID_FIELD,
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id else None},
        )


class SheetNotFoundException(NotFoundException):
    """Salary sheet not found"""

    def __init__(self, sheet_id: str):
        super().__init__(
            resource_type="SalarySheet",
            resource_id=sheet_id,
            code=ErrorCode.SHEET_NOT_FOUND,
        )


class EntryNotFoundException(NotFoundException):
    """Salary entry not found"""

    def __init__(self, entry_id: str):
        super().__init__(
            resource_type="SalaryEntry",
            resource_id=entry_id,
            code=ErrorCode.ENTRY_NOT_FOUND,
        )


class EmployeeNotFoundException(NotFoundException):
    """Employee not found"""

    def __init__(self, employee_id: str):
        super().__init__(
            resource_type="Employee",
            resource_id=employee_id,
            code=ErrorCode.EMPLOYEE_NOT_FOUND,
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
        )


class AccountAlreadyCountedException(ConflictException):
    """Account opening already credited to a salary sheet"""

    def __init__(self, account_code: str, counted_month: Optional[str]):
        super().__init__(
            message=f"Account '{account_code}' was already counted in {counted_month or 'a past sheet'}",
            resource_type="AccountOpening",
            code=ErrorCode.ACCOUNT_ALREADY_COUNTED,
            details={"account_code": account_code, "counted_month": counted_month},
        )


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation exception"""

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=_details,
        )


class SheetFinalizedException(BusinessRuleException):
    """Salary sheet already closed"""

    def __init__(self, sheet_id: str):
        super().__init__(
            message=f"Salary sheet '{sheet_id}' is finalized and cannot be changed",
            rule="SHEET_MUST_BE_DRAFT",
            code=ErrorCode.SHEET_FINALIZED,
            details={"sheet_id": sheet_id},
        )


class AccountRejectedException(BusinessRuleException):
    """Account scan rejected by the eligibility rules"""

    def __init__(self, code: str, result: AccountValidationResult):
        reason = result.reason or RejectionReason.NOT_FOUND
        super().__init__(
            message=result.message or "Account rejected",
            rule=reason.value.upper(),
            code=REJECTION_ERROR_CODES[reason],
            details={"account_code": code, "reason": reason.value},
        )
        self.result = result


# ============================================================================
# Configuration Exceptions
# ============================================================================

class ConfigurationException(AppException):
    """Missing or unusable rule configuration"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ErrorCode.CONFIGURATION_ERROR,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


# ============================================================================
# Exception Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response"""
    content = {
        "detail": {
            "code": code.value,
            "message": message,
            "timestamp": _utc_timestamp(),
        }
    }
    if field:
        content["detail"]["field"] = field
    if details:
        content["detail"]["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"AppException: {exc.code.value} - {exc.message}",
        extra={
            "code": exc.code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
        exc_info=exc.original_error,
    )

    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        field=exc.field,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException"""
    code_map = {
        400: ErrorCode.INVALID_INPUT,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
    }

    error_code = code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTPException: {exc.status_code} - {message}",
        extra={"path": request.url.path, "method": request.method},
    )

    return create_error_response(
        code=error_code,
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        f"ValidationError: {len(errors)} validation errors",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )

    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy errors"""
    error_message = "A database error occurred"
    error_code = ErrorCode.DATABASE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if isinstance(exc, IntegrityError):
        error_message = "Data integrity constraint violated"
        error_code = ErrorCode.DATA_INTEGRITY_ERROR
        error_str = str(exc.orig).lower() if exc.orig else ""
        if "unique" in error_str or "duplicate" in error_str:
            error_message = "A record with this value already exists"
            error_code = ErrorCode.DUPLICATE_ENTRY
            status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, OperationalError):
        error_message = "Database operation failed"
        error_code = ErrorCode.CONNECTION_ERROR
    elif isinstance(exc, DataError):
        error_message = "Invalid data format for database"
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    logger.error(
        f"SQLAlchemyError: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=error_code,
        message=error_message,
        status_code=status_code,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions"""
    logger.critical(
        f"UnhandledException: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
