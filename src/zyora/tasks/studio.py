from __future__ import annotations

import asyncio
import base64
import logging
import re
from pathlib import Path

from ..clients.api import TryOnApiClient
from ..errors import QuotaExceededError
from ..images import save_look_image, validate_image
from ..store import AppStore
from ..types import GenerationResult, ImageAsset, ImageKind, SavedLook, UserProfile

logger = logging.getLogger(__name__)

_HTTP_URL = re.compile(r"^https?://.+", re.IGNORECASE)


def ensure_quota(user: UserProfile | None) -> None:
    """Raise QuotaExceededError when the signed-in user has used every generation."""
    if user is not None and user.quota >= user.max_quota:
        raise QuotaExceededError(user.quota, user.max_quota)


class StudioWorkflow:
    """
    Drives one try-on: stage the subject and garment, generate, keep the result.

    The workflow reads and mutates ``AppStore`` the same way the app's studio and
    generate screens do; it adds no state of its own.
    """

    def __init__(
        self,
        store: AppStore,
        client: TryOnApiClient,
        max_image_size_mb: float = 10.0,
    ) -> None:
        self._store = store
        self._client = client
        self._max_image_size_mb = max_image_size_mb

    def stage_image_file(self, path: str | Path, kind: ImageKind) -> ImageAsset:
        """Load and validate an image from disk, then stage it as subject or garment."""
        if kind is ImageKind.GENERATED:
            raise ValueError("Only user and fit images can be staged")
        file_path = Path(path)
        data = file_path.read_bytes()
        validate_image(data, max_size_mb=self._max_image_size_mb)

        asset = ImageAsset(
            uri=file_path.resolve().as_uri(),
            type=kind,
            base64=base64.b64encode(data).decode("ascii"),
        )
        if kind is ImageKind.USER:
            self._store.set_user_img(asset)
        else:
            self._store.set_fit_img(asset)
        return asset

    async def stage_fit_from_url(self, url: str) -> bool:
        """Stage a garment fetched through the backend proxy; False when the fetch fails."""
        url = url.strip()
        if not _HTTP_URL.match(url):
            raise ValueError("Please enter a valid image URL")

        image_data = await self._client.fetch_image_from_url(url)
        if image_data is None:
            return False
        self._store.set_fit_img(ImageAsset(uri=image_data, type=ImageKind.FIT))
        return True

    async def _resolve_base64(self, asset: ImageAsset) -> str:
        if asset.base64:
            return asset.base64
        return await self._client.uri_to_base64(asset.uri)

    async def generate(self) -> GenerationResult:
        """
        Generate a look from the staged images.

        Raises QuotaExceededError before any request is made when the user is
        out of generations. Every other failure is returned as a failed result.
        """
        state = self._store.state
        user_img, fit_img = state.user_img, state.fit_img
        if user_img is None or fit_img is None:
            return GenerationResult.failure("Missing images")

        ensure_quota(state.user)

        try:
            user_b64, fit_b64 = await asyncio.gather(
                self._resolve_base64(user_img),
                self._resolve_base64(fit_img),
            )
        except RuntimeError as exc:
            logger.error("Could not read staged images: %s", exc)
            return GenerationResult.failure(str(exc))

        result = await self._client.generate_look(user_b64, fit_b64)
        if not result.success or not result.image:
            return GenerationResult.failure(result.error or "Failed to generate look")

        self._store.increment_quota()
        self._store.add_saved_look(
            SavedLook(
                image=result.image,
                user_image_uri=user_img.uri,
                fit_image_uri=fit_img.uri,
            )
        )
        return result

    @staticmethod
    def save_result(image: SavedLook | str, directory: str | Path) -> Path:
        """Write a generated look to ``directory`` as a PNG file."""
        data_uri = image.image if isinstance(image, SavedLook) else image
        return save_look_image(data_uri, directory)
