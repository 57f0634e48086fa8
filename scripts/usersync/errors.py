"""Exception taxonomy shared by the sync and inspection commands."""

from __future__ import annotations


class UserSyncError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(UserSyncError):
    """A credential source is present but malformed."""


class CredentialsNotFoundError(UserSyncError):
    """No credential source resolved."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or (
                "Firebase admin credentials not found in environment. Provide "
                "GOOGLE_APPLICATION_CREDENTIALS, FIREBASE_SERVICE_ACCOUNT_BASE64, "
                "FIREBASE_SERVICE_ACCOUNT, or the individual FIREBASE_* vars."
            )
        )


class LookupFailure(UserSyncError):
    """An identity source or user store call failed."""


class AmbiguousMatchError(LookupFailure):
    """More than one application user matched a lookup that must be unique."""

    def __init__(self, field: str, value: str, count: int) -> None:
        super().__init__(f"{count} users match {field}={value!r}, expected at most one")
        self.field = field
        self.value = value
        self.count = count
