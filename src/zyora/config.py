from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

DEFAULT_API_BASE_URL = "https://zyora-szo7.vercel.app"


class ApiConfig(BaseModel):
    """Settings for the try-on backend."""

    base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        description="Base URL serving /generate-look, /fetch-image, /exchange-token and /health",
    )
    timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Per-request timeout; generation can take well over a minute",
    )
    auth_token: str | None = Field(
        default=None,
        description="Optional bearer token sent with generate-look requests",
    )
    health_poll_attempts: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Health checks attempted by wait_until_healthy before giving up",
    )
    health_poll_interval_seconds: float = Field(
        default=2.0,
        ge=0.0,
        le=60.0,
        description="Delay between health checks",
    )


class GoogleAuthConfig(BaseModel):
    """Settings for signing in with a Google OAuth access token."""

    web_client_id: str | None = Field(default=None, description="OAuth web client id")
    userinfo_url: str = Field(default="https://www.googleapis.com/userinfo/v2/me")
    revoke_url: str = Field(default="https://oauth2.googleapis.com/revoke")
    timeout_seconds: float = Field(default=30.0, gt=0)


class StorageConfig(BaseModel):
    """Where local state is persisted."""

    path: Path = Field(default_factory=lambda: Path("~/.zyora/storage.json").expanduser())
    max_saved_looks: int = Field(
        default=50,
        ge=1,
        description="Saved looks kept, newest first; older looks are evicted",
    )


class AppConfig(BaseModel):
    """Top-level configuration consumed at the composition root."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    google: GoogleAuthConfig = Field(default_factory=GoogleAuthConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    max_free_quota: int = Field(default=10, gt=0, description="Free generations per user")
    max_image_size_mb: float = Field(default=10.0, gt=0)
    enable_google_auth: bool = Field(
        default=False,
        description="Use Google sign-in; developer sign-in stays available either way",
    )

    @model_validator(mode="after")
    def _validate_google(self) -> "AppConfig":
        if self.enable_google_auth and not self.google.web_client_id:
            raise ValueError("Google web client id is required when enable_google_auth is True")
        return self


def _bool_from_env(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _float_from_env(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid float value: {value}") from exc


def _int_from_env(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer value: {value}") from exc


def load_config(dotenv_path: str | Path | None = None) -> AppConfig:
    """
    Load configuration from environment variables (optionally seeded by a .env file).

    Parameters
    ----------
    dotenv_path:
        Optional override for the .env file location. Defaults to ``.env`` in the
        working directory.

    Raises
    ------
    RuntimeError
        If a value is malformed or a required value is missing.
    """
    env_path = Path(dotenv_path) if dotenv_path else Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    storage_path = os.getenv("ZYORA_STORAGE_PATH")

    data = {
        "api": {
            "base_url": os.getenv("ZYORA_API_BASE_URL", DEFAULT_API_BASE_URL),
            "timeout_seconds": _float_from_env(os.getenv("ZYORA_API_TIMEOUT"), 120.0),
            "auth_token": os.getenv("ZYORA_API_TOKEN") or None,
            "health_poll_attempts": _int_from_env(os.getenv("ZYORA_HEALTH_POLL_ATTEMPTS"), 5),
            "health_poll_interval_seconds": _float_from_env(
                os.getenv("ZYORA_HEALTH_POLL_INTERVAL"), 2.0
            ),
        },
        "google": {
            "web_client_id": os.getenv("GOOGLE_WEB_CLIENT_ID") or None,
        },
        "storage": {
            "max_saved_looks": _int_from_env(os.getenv("ZYORA_MAX_SAVED_LOOKS"), 50),
        },
        "max_free_quota": _int_from_env(os.getenv("ZYORA_MAX_FREE_QUOTA"), 10),
        "max_image_size_mb": _float_from_env(os.getenv("ZYORA_MAX_IMAGE_SIZE_MB"), 10.0),
        "enable_google_auth": _bool_from_env(os.getenv("ENABLE_GOOGLE_AUTH"), False),
    }
    if storage_path:
        data["storage"]["path"] = Path(storage_path).expanduser()

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as exc:
        missing = {"/".join(str(part) for part in err["loc"]) or err["msg"] for err in exc.errors()}
        missing_str = ", ".join(sorted(missing))
        raise RuntimeError(f"Missing configuration values: {missing_str}") from exc

    config.storage.path.parent.mkdir(parents=True, exist_ok=True)
    return config
