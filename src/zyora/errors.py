"""
Exception types raised by the Zyora client core.
"""
from __future__ import annotations


class ZyoraError(Exception):
    """Base class for errors raised by this package."""


class StorageError(ZyoraError):
    """Reading, decoding or writing a persisted entry failed."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{message} ({key})")
        self.key = key


class IdentityError(ZyoraError):
    """The identity provider rejected or failed a sign-in or sign-out."""


class QuotaExceededError(ZyoraError):
    """The signed-in user has no generations left."""

    def __init__(self, quota: int, max_quota: int) -> None:
        super().__init__(
            f"You've reached your free limit ({quota}/{max_quota}). Upgrade to generate more looks."
        )
        self.quota = quota
        self.max_quota = max_quota


class ImageValidationError(ZyoraError):
    """An image picked for generation is too large or of an unsupported type."""
