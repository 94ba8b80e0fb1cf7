"""
Custom Exceptions

This module defines custom exceptions for better error handling
and more specific error messages.

Every error is local to a single request. The API layer maps each type
to an HTTP status in qrlinks.api.errors.
"""

from typing import Optional


class QRLinksException(Exception):
    """Base exception for the QR links service."""
    pass


class InvalidInputError(QRLinksException):
    """Raised when request input fails validation (before any store access)."""

    def __init__(self, field: str, reason: str, message: Optional[str] = None):
        self.field = field
        self.reason = reason
        super().__init__(message or f"Invalid {field}: {reason}")


class InvalidURLError(InvalidInputError):
    """Raised when URL validation fails."""

    def __init__(self, url: str, reason: str = "Invalid URL format"):
        self.url = url
        super().__init__("url", reason, f"{reason}: {url}")


class LinkNotFoundError(QRLinksException):
    """
    Raised when a link does not exist or belongs to another owner.

    Both cases share one message so callers cannot tell whether the link exists.
    """

    def __init__(self, link_ref):
        self.link_ref = link_ref
        super().__init__("Link not found or unauthorized")


class QuotaExceededError(QRLinksException):
    """Raised when an owner has reached the link limit of their plan."""

    def __init__(self, limit: int, plan: str):
        self.limit = limit
        self.plan = plan
        super().__init__(
            f"Plan limit reached. You can create up to {limit} links on the {plan} plan."
        )


class FeatureGatedError(QRLinksException):
    """Raised when a feature is requested without the plan entitlement."""

    def __init__(self, feature: str, plan: Optional[str] = None):
        self.feature = feature
        self.plan = plan
        super().__init__(f"{feature} requires a premium plan")


class GenerationExhaustedError(QRLinksException):
    """Raised when every identifier drawn for a creation collided."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not allocate a unique identifier after {attempts} attempts")


class StoreUnavailableError(QRLinksException):
    """Raised when the persistence layer cannot be reached."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Store unavailable: {message}")


class DuplicateIdentifierError(QRLinksException):
    """Raised by stores when an identifier was already issued."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Identifier '{identifier}' already issued")


class DuplicateEmailError(QRLinksException):
    """Raised when registering an email that already has an account."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"An account for '{email}' already exists")


class AuthenticationError(QRLinksException):
    """Raised when credentials or access tokens are missing or invalid."""
    pass
