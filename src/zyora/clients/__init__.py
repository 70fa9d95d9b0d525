"""
Clients for the try-on backend and identity providers.
"""
from .api import TryOnApiClient
from .identity import (
    DeveloperIdentityProvider,
    GoogleIdentityProvider,
    IdentityProvider,
    build_identity_provider,
)

__all__ = [
    "TryOnApiClient",
    "DeveloperIdentityProvider",
    "GoogleIdentityProvider",
    "IdentityProvider",
    "build_identity_provider",
]
