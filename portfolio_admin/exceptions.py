"""Exceptions raised by the admin login gate"""

from typing import Optional


class PortfolioAdminError(Exception):
    """Base exception for the admin panel"""

    message = "Login failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class ConfigError(PortfolioAdminError):
    """Configuration error"""
    message = "Configuration error"


class RecordValidationError(PortfolioAdminError):
    """A stored record is missing required fields or holds invalid values"""
    message = "Stored record is invalid"


class InvalidCredentials(PortfolioAdminError):
    message = "Invalid email or password"


class TooManyAttempts(PortfolioAdminError):
    """The identity provider is throttling sign-ins for this identifier"""

    message = "Too many failed attempts. Please try again later"

    def __init__(self, message: Optional[str] = None, retry_after: Optional[int] = None):
        self.retry_after = retry_after
        super().__init__(message)


class NotAuthorized(PortfolioAdminError):
    message = "You do not have access to this page"


class CodeGenerationFailed(PortfolioAdminError):
    message = "Could not generate verification code"


class DeliveryFailed(PortfolioAdminError):
    message = "Verification code could not be sent"


class InvalidOrUsedCode(PortfolioAdminError):
    message = "Invalid or already used code"


class Expired(PortfolioAdminError):
    message = "Verification code has expired"


class InvalidResetToken(PortfolioAdminError):
    message = "Password reset link is invalid or has expired"


class ServiceUnavailable(PortfolioAdminError):
    """The database could not be reached while handling a login action"""
    message = "Service temporarily unavailable. Please try again"
