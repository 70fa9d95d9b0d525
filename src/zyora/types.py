from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

_last_id = 0


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    """Return a time-based id (epoch milliseconds) that never repeats within a process."""
    global _last_id
    candidate = max(now_ms(), _last_id + 1)
    _last_id = candidate
    return str(candidate)


class _CamelModel(BaseModel):
    """Base for records persisted with the app's camelCase JSON field names."""

    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class UserProfile(_CamelModel):
    """Signed-in user and their generation quota."""

    uid: str
    display_name: str | None = Field(default=None, alias="displayName")
    email: str | None = None
    photo_url: str | None = Field(default=None, alias="photoURL")
    quota: int = Field(default=0, ge=0, description="Generations used so far")
    max_quota: int = Field(..., gt=0, alias="maxQuota")

    @property
    def remaining_quota(self) -> int:
        return max(self.max_quota - self.quota, 0)

    @property
    def has_quota_remaining(self) -> bool:
        return self.quota < self.max_quota

    def with_quota(self, quota: int) -> "UserProfile":
        return self.model_copy(update={"quota": quota})


class ImageKind(str, Enum):
    USER = "user"
    FIT = "fit"
    GENERATED = "generated"


class ImageAsset(_CamelModel):
    """An image staged in memory for generation; never persisted on its own."""

    id: str = Field(default_factory=new_id)
    uri: str
    type: ImageKind
    date: int = Field(default_factory=now_ms, description="Epoch milliseconds")
    base64: str | None = None


class SavedLook(_CamelModel):
    """A generated look kept in the gallery."""

    id: str = Field(default_factory=new_id)
    image: str = Field(..., description="Data URI or remote URI of the composited image")
    created_at: int = Field(default_factory=now_ms, alias="createdAt")
    user_image_uri: str | None = Field(default=None, alias="userImageUri")
    fit_image_uri: str | None = Field(default=None, alias="fitImageUri")


class ProviderProfile(BaseModel):
    """Identity fields returned by an identity provider after sign-in."""

    uid: str
    display_name: str | None = None
    email: str | None = None
    photo_url: str | None = None


@dataclass(slots=True)
class GenerationResult:
    """Normalized outcome of a generate-look request."""

    success: bool
    image: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, image: str) -> "GenerationResult":
        return cls(success=True, image=image)

    @classmethod
    def failure(cls, error: str) -> "GenerationResult":
        return cls(success=False, error=error)
