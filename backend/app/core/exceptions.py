"""
Custom exception hierarchy for different error types
"""
from typing import Optional, Dict, Any


class TalentDeskException(Exception):
    """Base exception for all TalentDesk errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(TalentDeskException):
    """Missing or rejected credentials, unapproved accounts"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="AUTHENTICATION_ERROR",
            details=details
        )


class AuthorizationError(TalentDeskException):
    """Authenticated viewer lacks the capability for an action"""

    def __init__(self, message: str = "No permission", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="NO_PERMISSION",
            details=details
        )


class ValidationError(TalentDeskException):
    """Input validation errors"""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        self.field = field

        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details=error_details
        )


class NotFoundError(TalentDeskException):
    """Requested record does not exist"""

    def __init__(self, resource: str, identifier: Any, details: Optional[Dict[str, Any]] = None):
        error_details = details or {}
        error_details.update({
            "resource": resource,
            "identifier": str(identifier)
        })

        super().__init__(
            message=f"{resource} {identifier} not found",
            error_code="NOT_FOUND",
            details=error_details
        )


class GatewayError(TalentDeskException):
    """Query, RPC or auth call against the remote data gateway failed"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if operation:
            error_details["operation"] = operation
        if table:
            error_details["table"] = table
        self.operation = operation
        self.table = table

        super().__init__(
            message=message,
            error_code="GATEWAY_ERROR",
            details=error_details
        )


class StorageError(GatewayError):
    """Blob storage upload, removal or signing failed"""

    def __init__(
        self,
        message: str,
        bucket: Optional[str] = None,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if bucket:
            error_details["bucket"] = bucket
        if path:
            error_details["path"] = path

        super().__init__(
            message=message,
            operation="storage",
            details=error_details
        )
        self.error_code = "STORAGE_ERROR"


class ConfigurationError(TalentDeskException):
    """Required server configuration is missing"""

    def __init__(self, setting: str, details: Optional[Dict[str, Any]] = None):
        error_details = details or {}
        error_details["setting"] = setting

        super().__init__(
            message=f"Missing required configuration: {setting}",
            error_code="CONFIGURATION_ERROR",
            details=error_details
        )


HTTP_STATUS_CODES = {
    ValidationError: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    NotFoundError: 404,
    ConfigurationError: 500,
    GatewayError: 500,
}


def status_code_for(exc: TalentDeskException) -> int:
    """HTTP status for a domain exception; subclasses inherit their parent's code"""
    for cls in type(exc).__mro__:
        if cls in HTTP_STATUS_CODES:
            return HTTP_STATUS_CODES[cls]
    return 500
