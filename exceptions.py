"""
Custom Exceptions for SubTrack Auth
===================================

This module defines a hierarchy of custom exceptions that:

1. **Categorize Errors**: Different exception types for different problems
2. **Carry Context**: Include relevant information for debugging
3. **Support APIs**: Map cleanly to HTTP status codes in the callback API

Exception Hierarchy:
    SubTrackError (base)
    ├── AuthError
    │   ├── AuthProviderError
    │   ├── EmailNotConfirmedError
    │   └── OAuthError
    ├── ProfileError
    │   ├── ProfileLookupError
    │   └── ProfileInsertError
    ├── PreferenceLoadError
    └── ConfigurationError
"""

from typing import Optional


class SubTrackError(Exception):
    """
    Base exception for all SubTrack errors.

    All custom exceptions inherit from this, allowing code to catch
    all SubTrack-related errors with a single except clause:

        try:
            await auth.sign_in_with_password(email, password)
        except SubTrackError as e:
            logger.error(f"Login error: {e}")

    Attributes:
        message: Human-readable error description
        details: Additional context (dict for API responses)
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


# =============================================================================
# Authentication Errors
# =============================================================================

class AuthError(SubTrackError):
    """Base class for authentication errors."""
    pass


class AuthProviderError(AuthError):
    """
    Raised when the auth provider rejects or fails a call.

    The provider's own message is kept verbatim as `message`, because the
    login screen shows it to the user unchanged.
    """

    def __init__(self, operation: str, reason: str, status: Optional[int] = None):
        super().__init__(
            message=reason,
            details={
                "operation": operation,
                "status": status
            }
        )


class EmailNotConfirmedError(AuthError):
    """Raised when the provider signs in an account whose email is unconfirmed."""

    def __init__(self, email: Optional[str], message: str):
        super().__init__(
            message=message,
            details={"email": email}
        )


class OAuthError(AuthError):
    """Raised when the OAuth redirect comes back with an error or no code."""

    def __init__(self, error: str, description: Optional[str] = None):
        super().__init__(
            message=f"OAuth sign-in failed: {description or error}",
            details={
                "error": error,
                "error_description": description
            }
        )


# =============================================================================
# Profile Errors
# =============================================================================

class ProfileError(SubTrackError):
    """Base class for profile store errors."""
    pass


class ProfileLookupError(ProfileError):
    """Raised when reading a profile fails."""

    def __init__(self, user_id: str, reason: str):
        super().__init__(
            message=f"Could not look up profile {user_id}: {reason}",
            details={
                "user_id": user_id,
                "reason": reason
            }
        )


class ProfileInsertError(ProfileError):
    """Raised when creating a profile fails (including duplicate ids)."""

    def __init__(self, user_id: str, reason: str):
        super().__init__(
            message=f"Could not create profile {user_id}: {reason}",
            details={
                "user_id": user_id,
                "reason": reason
            }
        )


class PreferenceLoadError(SubTrackError):
    """Raised when a theme or currency preference cannot be loaded."""

    def __init__(self, preference: str, reason: str):
        super().__init__(
            message=f"Could not load {preference} preference: {reason}",
            details={
                "preference": preference,
                "reason": reason
            }
        )


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(SubTrackError):
    """Raised when there's a configuration problem."""

    def __init__(self, setting_name: str, issue: str):
        super().__init__(
            message=f"Configuration error for '{setting_name}': {issue}",
            details={
                "setting_name": setting_name,
                "issue": issue
            }
        )
