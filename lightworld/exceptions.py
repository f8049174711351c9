"""
Custom Exceptions for Light World CLI
=====================================

Errors raised by account commands and by programming mistakes in the
recovery flow. The HTTP client itself never raises for backend or network
failures; it returns a failed ApiResult instead.

Usage:
    from lightworld.exceptions import ValidationError, ApiError

    if error:
        raise ValidationError(error)

    result = await client.login(email, password)
    if not result.ok:
        raise ApiError(result.message, status_code=result.status_code)
"""

from typing import Optional, Any, Dict


class LightWorldError(Exception):
    """Base exception for all Light World errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Client-side Errors
# ============================================

class ValidationError(LightWorldError):
    """Input rejected before any request was sent"""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidTransitionError(LightWorldError):
    """Recovery flow asked to move to a stage it cannot reach"""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move from {current} to {target}",
            code="INVALID_TRANSITION",
            details={"current": current, "target": target}
        )


# ============================================
# Backend & Transport Errors
# ============================================

class ApiError(LightWorldError):
    """Backend answered with success=false or a non-2xx status"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, code="API_ERROR", details={"status_code": status_code})
        self.status_code = status_code


class TransportError(LightWorldError):
    """Request never produced a usable response"""

    def __init__(self, message: str = "Cannot connect to server. Is the backend running?"):
        super().__init__(message, code="TRANSPORT_ERROR")


# ============================================
# Authentication Errors
# ============================================

class AuthenticationError(LightWorldError):
    """User authentication failed"""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class NotAuthenticatedError(AuthenticationError):
    """Command needs a stored login"""

    def __init__(self):
        super().__init__("Authentication required. Run 'lightworld login' first.")
        self.code = "NOT_AUTHENTICATED"
