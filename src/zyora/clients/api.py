from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import Any, Dict

import httpx
from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_attempt, wait_fixed

from ..config import ApiConfig
from ..errors import ImageValidationError
from ..images import decode_base64_image, detect_mime, strip_data_uri, to_data_uri, to_jpeg
from ..types import GenerationResult

logger = logging.getLogger(__name__)

GENERATE_LOOK_PATH = "/generate-look"
FETCH_IMAGE_PATH = "/fetch-image"
EXCHANGE_TOKEN_PATH = "/exchange-token"
HEALTH_PATH = "/health"

_DEFAULT_GENERATE_ERROR = "Failed to generate look"


class TryOnApiClient:
    """
    Client for the try-on backend.

    ``generate_look``, ``fetch_image_from_url`` and ``check_health`` never raise:
    failures come back as ``GenerationResult.failure``, ``None`` or ``False``.
    Nothing here retries a generation; each call is a single request.
    """

    def __init__(self, config: ApiConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config
        self._session = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            timeout=httpx.Timeout(config.timeout_seconds),
            transport=transport,
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        await self._session.aclose()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        text = response.text
        try:
            body = response.json()
        except ValueError:
            return text or _DEFAULT_GENERATE_ERROR
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return _DEFAULT_GENERATE_ERROR

    async def generate_look(
        self,
        user_image_base64: str,
        fit_image_base64: str,
        auth_token: str | None = None,
    ) -> GenerationResult:
        """
        Send the subject and garment images and return the composited look.

        Both inputs may be bare base64 or data URIs. They are uploaded as JPEG
        multipart fields ``userImgs`` and ``fitImg``. On success the image is
        returned as a ``data:image/png;base64,...`` URI.
        """
        try:
            user_bytes = to_jpeg(decode_base64_image(user_image_base64))
            fit_bytes = to_jpeg(decode_base64_image(fit_image_base64))
        except ImageValidationError as exc:
            logger.warning("Generate look rejected input images: %s", exc)
            return GenerationResult.failure(str(exc))

        files = [
            ("userImgs", ("user.jpg", user_bytes, "image/jpeg")),
            ("fitImg", ("fit.jpg", fit_bytes, "image/jpeg")),
        ]
        headers: Dict[str, str] = {}
        token = auth_token or self._config.auth_token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._session.post(GENERATE_LOOK_PATH, files=files, headers=headers)
            if not response.is_success:
                message = self._error_message(response)
                logger.error("Generate look failed with status %s: %s", response.status_code, message)
                return GenerationResult.failure(message)

            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("Generate look request failed")
            return GenerationResult.failure(str(exc) or _DEFAULT_GENERATE_ERROR)

        image = data.get("image") if isinstance(data, dict) else None
        if not image:
            logger.error("Generate look response missing image data: %r", type(data).__name__)
            return GenerationResult.failure("No image returned from server")

        return GenerationResult.ok(f"data:image/png;base64,{image}")

    async def fetch_image_from_url(self, image_url: str) -> str | None:
        """Fetch a remote image through the backend proxy and return it as a data URI."""
        try:
            response = await self._session.get(FETCH_IMAGE_PATH, params={"url": image_url})
            response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("Fetch image failed for %s", image_url)
            return None

        content = response.content
        if not content:
            logger.error("Fetch image returned an empty body for %s", image_url)
            return None
        mime = response.headers.get("content-type", "").split(";")[0].strip()
        if not mime.startswith("image/"):
            mime = detect_mime(content) or "application/octet-stream"
        return to_data_uri(content, mime)

    async def check_health(self) -> bool:
        try:
            response = await self._session.get(HEALTH_PATH)
            data = response.json()
        except (httpx.HTTPError, ValueError):
            logger.debug("Health check failed", exc_info=True)
            return False
        return isinstance(data, dict) and data.get("status") == "ok"

    async def wait_until_healthy(
        self,
        attempts: int | None = None,
        wait_seconds: float | None = None,
    ) -> bool:
        """Poll the health endpoint until it reports ok or the attempts run out."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts or self._config.health_poll_attempts),
            wait=wait_fixed(
                self._config.health_poll_interval_seconds if wait_seconds is None else wait_seconds
            ),
            retry=retry_if_result(lambda healthy: not healthy),
        )
        try:
            return await retrying(self.check_health)
        except RetryError:
            return False

    async def exchange_token(self, token: str) -> str | None:
        """Trade a provider access token for a backend custom token."""
        try:
            response = await self._session.post(EXCHANGE_TOKEN_PATH, json={"token": token})
            response.raise_for_status()
            data: Dict[str, Any] = response.json()
        except (httpx.HTTPError, ValueError):
            logger.exception("Token exchange failed")
            return None
        return data.get("customToken") if isinstance(data, dict) else None

    async def uri_to_base64(self, uri: str) -> str:
        """
        Resolve an image URI to bare base64.

        Accepts data URIs, ``file://`` URIs or plain paths, and http(s) URLs.
        """
        if uri.startswith("data:"):
            if "," not in uri:
                logger.error("Malformed data URI: %.40s", uri)
                raise RuntimeError("Failed to read image file")
            return strip_data_uri(uri)

        if uri.startswith(("http://", "https://")):
            try:
                response = await self._session.get(uri)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.exception("Error fetching remote image %s", uri)
                raise RuntimeError("Failed to fetch image from URL") from exc
            return base64.b64encode(response.content).decode("ascii")

        path = Path(uri[len("file://"):] if uri.startswith("file://") else uri)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            logger.exception("Error reading file %s", path)
            raise RuntimeError("Failed to read image file") from exc
        return base64.b64encode(data).decode("ascii")

    async def __aenter__(self) -> "TryOnApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()
