from __future__ import annotations

import abc
import logging
from typing import Any, Dict

import httpx

from ..config import AppConfig, GoogleAuthConfig
from ..errors import IdentityError
from ..types import ProviderProfile, new_id

logger = logging.getLogger(__name__)


class IdentityProvider(abc.ABC):
    """Sign-in capability the app store delegates to."""

    @abc.abstractmethod
    async def sign_in_developer(self) -> ProviderProfile:
        """Return a local developer identity."""

    @abc.abstractmethod
    async def sign_in_with_provider(self, token: str) -> ProviderProfile:
        """Resolve a provider token to a profile, raising IdentityError on failure."""

    @abc.abstractmethod
    async def sign_out(self) -> None:
        """End the provider session."""

    async def aclose(self) -> None:
        """Release any network resources held by the provider."""
        return None


class DeveloperIdentityProvider(IdentityProvider):
    """Offline provider: every sign-in yields the developer identity."""

    async def sign_in_developer(self) -> ProviderProfile:
        return ProviderProfile(
            uid=f"dev-user-{new_id()}",
            display_name="Developer",
            email="dev@zyora.app",
        )

    async def sign_in_with_provider(self, token: str) -> ProviderProfile:
        return await self.sign_in_developer()

    async def sign_out(self) -> None:
        return None


class GoogleIdentityProvider(IdentityProvider):
    """Resolves Google OAuth access tokens through the userinfo endpoint."""

    def __init__(
        self,
        config: GoogleAuthConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        fallback: IdentityProvider | None = None,
    ) -> None:
        self._config = config
        self._session = httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds),
            transport=transport,
        )
        self._fallback = fallback or DeveloperIdentityProvider()
        self._access_token: str | None = None

    async def aclose(self) -> None:
        await self._session.aclose()

    @property
    def signed_in(self) -> bool:
        return self._access_token is not None

    async def sign_in_developer(self) -> ProviderProfile:
        return await self._fallback.sign_in_developer()

    async def sign_in_with_provider(self, token: str) -> ProviderProfile:
        if not token:
            raise IdentityError("Google sign-in returned no access token")
        try:
            response = await self._session.get(
                self._config.userinfo_url,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
            info: Dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise IdentityError(
                f"Failed to get user info (status {exc.response.status_code})"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise IdentityError(f"Failed to get user info: {exc}") from exc

        if not isinstance(info, dict) or not info.get("id"):
            raise IdentityError("Google user info did not include an account id")

        self._access_token = token
        return ProviderProfile(
            uid=str(info["id"]),
            display_name=info.get("name"),
            email=info.get("email"),
            photo_url=info.get("picture"),
        )

    async def sign_out(self) -> None:
        token, self._access_token = self._access_token, None
        if token is None:
            return
        try:
            response = await self._session.post(self._config.revoke_url, params={"token": token})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise IdentityError(f"Failed to revoke Google token: {exc}") from exc

    async def __aenter__(self) -> "GoogleIdentityProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()


def build_identity_provider(
    config: AppConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> IdentityProvider:
    """Google sign-in when enabled, with developer sign-in as the fallback."""
    developer = DeveloperIdentityProvider()
    if not config.enable_google_auth:
        return developer
    return GoogleIdentityProvider(config.google, transport=transport, fallback=developer)
