"""
In-memory application state and the actions that mutate it.

Every action updates ``AppStore.state`` synchronously. Where the field is
persisted, the matching storage adapter call is scheduled as a background task
on the running event loop and never awaited by the action; a failed write is
logged and the in-memory state is kept as is. Called with no running loop, an
action still updates the state but the write is skipped with a warning.
``flush()`` waits for all writes scheduled so far.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Set

from .clients.identity import IdentityProvider
from .storage.adapters import MAX_SAVED_LOOKS, StorageAdapters
from .types import ImageAsset, ProviderProfile, SavedLook, UserProfile, new_id

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUOTA = 10


class SessionStatus(str, Enum):
    SIGNED_OUT = "signed_out"
    SIGNED_IN = "signed_in"


@dataclass(slots=True)
class AppState:
    user: UserProfile | None = None
    is_loading: bool = True
    is_dev_mode: bool = False
    user_img: ImageAsset | None = None
    fit_img: ImageAsset | None = None
    saved_looks: List[SavedLook] = field(default_factory=list)


class AppStore:
    """Owns the session state: user, staged images, saved looks and flags."""

    def __init__(
        self,
        storage: StorageAdapters,
        identity: IdentityProvider,
        max_quota: int = DEFAULT_MAX_QUOTA,
        max_saved_looks: int = MAX_SAVED_LOOKS,
    ) -> None:
        self._storage = storage
        self._identity = identity
        self._max_quota = max_quota
        self._max_saved_looks = max_saved_looks
        self._state = AppState()
        self._pending: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------ #
    # Read access
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> AppState:
        return self._state

    @property
    def is_signed_in(self) -> bool:
        return self._state.user is not None

    @property
    def session_status(self) -> SessionStatus:
        return SessionStatus.SIGNED_IN if self.is_signed_in else SessionStatus.SIGNED_OUT

    @property
    def can_generate(self) -> bool:
        return self._state.user_img is not None and self._state.fit_img is not None

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------ #
    # Persistence scheduling
    # ------------------------------------------------------------------ #
    def _persist(self, description: str, write: Callable[..., Awaitable[None]], *args: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; %s was not persisted", description)
            return
        task = loop.create_task(write(*args))
        self._pending.add(task)
        task.add_done_callback(lambda done: self._on_persisted(description, done))

    def _on_persisted(self, description: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("Persisting %s was cancelled", description)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Failed to persist %s", description, exc_info=exc)

    async def flush(self) -> None:
        """Wait for every persistence write scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Actions
    # ------------------------------------------------------------------ #
    def set_user(self, user: UserProfile | None) -> None:
        self._state.user = user
        if user is not None:
            self._persist("user", self._storage.user.save, user)
        else:
            self._persist("user removal", self._storage.user.remove)

    def set_loading(self, loading: bool) -> None:
        self._state.is_loading = loading

    def set_dev_mode(self, enabled: bool) -> None:
        self._state.is_dev_mode = enabled
        self._persist("dev mode", self._storage.dev_mode.set_enabled, enabled)

    def set_user_img(self, image: ImageAsset | None) -> None:
        self._state.user_img = image

    def set_fit_img(self, image: ImageAsset | None) -> None:
        self._state.fit_img = image

    def set_saved_looks(self, looks: List[SavedLook]) -> None:
        self._state.saved_looks = list(looks)[: self._max_saved_looks]

    def add_saved_look(self, look: SavedLook) -> None:
        self._state.saved_looks = [look, *self._state.saved_looks][: self._max_saved_looks]
        self._persist(f"saved look {look.id}", self._storage.looks.save, look)

    def remove_saved_look(self, look_id: str) -> None:
        self._state.saved_looks = [look for look in self._state.saved_looks if look.id != look_id]
        self._persist(f"removal of look {look_id}", self._storage.looks.remove, look_id)

    def increment_quota(self) -> None:
        user = self._state.user
        if user is None:
            return
        self.set_user(user.with_quota(user.quota + 1))

    def update_profile(
        self,
        display_name: str | None = None,
        email: str | None = None,
        photo_url: str | None = None,
    ) -> None:
        """
        Overwrite profile fields; blank values keep the current ones.

        A falsy ``photo_url`` keeps the current photo, so a photo can be
        replaced but not cleared here.
        """
        user = self._state.user
        if user is None:
            return
        self.set_user(
            user.model_copy(
                update={
                    "display_name": (display_name or "").strip() or user.display_name,
                    "email": (email or "").strip() or user.email,
                    "photo_url": photo_url or user.photo_url,
                }
            )
        )

    async def sign_out(self) -> None:
        try:
            await self._identity.sign_out()
        except Exception:
            logger.exception("Identity provider sign-out failed")

        self._state.user = None
        self._state.is_dev_mode = False
        self._state.user_img = None
        self._state.fit_img = None
        self._persist("user removal", self._storage.user.remove)
        self._persist("dev mode removal", self._storage.dev_mode.remove)

    def sign_in_as_developer(self) -> UserProfile:
        user = UserProfile(
            uid=f"dev-user-{new_id()}",
            display_name="Developer",
            email="dev@zyora.app",
            photo_url=None,
            quota=0,
            max_quota=self._max_quota,
        )
        self.set_user(user)
        self.set_dev_mode(True)
        return user

    def sign_in_with_google(self, profile: ProviderProfile) -> UserProfile:
        user = UserProfile(
            uid=profile.uid,
            display_name=profile.display_name,
            email=profile.email,
            photo_url=profile.photo_url,
            quota=0,
            max_quota=self._max_quota,
        )
        self.set_user(user)
        self.set_dev_mode(False)
        return user

    async def sign_in_with_provider(self, token: str) -> UserProfile:
        """Sign in through the identity provider; its errors reach the caller."""
        profile = await self._identity.sign_in_with_provider(token)
        return self.sign_in_with_google(profile)

    async def load_from_storage(self) -> None:
        """
        Hydrate the state from storage.

        The three reads run concurrently. If any of them fails, nothing is
        applied and the app carries on signed out.
        """
        self._state.is_loading = True
        try:
            user, looks, dev_mode = await asyncio.gather(
                self._storage.user.get(),
                self._storage.looks.get_all(),
                self._storage.dev_mode.is_enabled(),
            )
        except Exception:
            logger.exception("Failed to load from storage")
            self._state.is_loading = False
            return

        self._state.user = user
        self._state.saved_looks = looks[: self._max_saved_looks]
        self._state.is_dev_mode = dev_mode
        self._state.is_loading = False

    def clear_all_data(self) -> None:
        self._state.user = None
        self._state.is_dev_mode = False
        self._state.user_img = None
        self._state.fit_img = None
        self._state.saved_looks = []
        self._persist("data clear", self._storage.clear)
