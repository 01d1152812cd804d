"""Engine-wide configuration sourced from environment variables or defaults."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class InferenceSettings(BaseSettings):
    default_device: str = Field(default="cpu", description="Device used when no context is given.")
    device_id: int = Field(default=0, ge=0)
    model_cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "inference_core" / "models",
        description="Where downloaded model artifacts are stored.",
    )
    repository_url: Optional[str] = Field(default=None, description="Base URL of a remote model repository.")
    download_timeout: float = Field(default=60.0, gt=0.0)
    download_retries: int = Field(default=3, ge=0)

    model_config = SettingsConfigDict(env_prefix="INFERENCE_", case_sensitive=False, protected_namespaces=())

    @field_validator("default_device", mode="before")
    @classmethod
    def _normalize_device(cls, value: str) -> str:
        device = str(value).strip().lower()
        if device not in {"cpu", "gpu"}:
            raise ValueError(f"Unsupported device type: {value}")
        return device

    @field_validator("model_cache_dir", mode="before")
    @classmethod
    def _expand_dir(cls, value: str | Path) -> Path:
        return Path(value).expanduser()


def get_settings(**overrides: object) -> InferenceSettings:
    return InferenceSettings(**overrides)
