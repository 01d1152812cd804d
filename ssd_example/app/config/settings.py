"""Configuration utilities for the SSD detection example."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application configuration sourced from environment variables or defaults."""

    model_dir: str = Field(default="models/ssd", description="Local model directory or repository URL.")
    model_name: str = Field(default="ssd_512_resnet50_v1_voc")
    image_file: Path = Field(default=Path("images/dog_bike_car.jpg"), description="Image to run detection on.")
    log_dir: Optional[Path] = Field(default=None, description="Directory for the rendered output image.")
    iteration: int = Field(default=1, ge=1)
    duration_minutes: Optional[float] = Field(default=None, gt=0.0)
    threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    image_width: int = Field(default=512, gt=0)
    image_height: int = Field(default=512, gt=0)
    device: str = Field(default="cpu")
    device_id: int = Field(default=0, ge=0)
    log_format: str = Field(default="text")
    output_filename: str = Field(default="ssd.jpg")
    model_artifacts: list[str] = Field(
        default_factory=lambda: ["{model_name}.onnx", "synset.txt"],
        description="Files fetched when model_dir is a URL; {model_name} is substituted.",
    )

    model_config = SettingsConfigDict(env_prefix="SSD_", case_sensitive=False, protected_namespaces=())

    @field_validator("image_file", "log_dir", mode="before")
    @classmethod
    def _expand_path(cls, value: Optional[str | Path]) -> Optional[Path]:
        if value is None or value == "":
            return None
        return Path(value).expanduser()

    @field_validator("device", mode="before")
    @classmethod
    def _normalize_device(cls, value: str) -> str:
        device = str(value).strip().lower()
        if device not in {"cpu", "gpu"}:
            raise ValueError(f"Unsupported device type: {value}")
        return device

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        if value not in {"text", "json"}:
            raise ValueError(f"Unsupported log format: {value}")
        return value


def load_settings(**overrides: object) -> AppSettings:
    """Return application settings, applying optional overrides."""

    return AppSettings(**overrides)
