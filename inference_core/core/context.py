"""Device placement for models and arrays."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..app.settings import InferenceSettings, get_settings

CPU = "cpu"
GPU = "gpu"


@dataclass(frozen=True)
class Device:
    device_type: str
    device_id: int = 0

    def is_gpu(self) -> bool:
        return self.device_type == GPU

    def __str__(self) -> str:
        return f"{self.device_type}({self.device_id})"


@dataclass(frozen=True)
class Context:
    """Where a model runs. The OpenCV engine maps it to a DNN backend/target."""

    device: Device

    @classmethod
    def cpu(cls) -> "Context":
        return cls(Device(CPU))

    @classmethod
    def gpu(cls, device_id: int = 0) -> "Context":
        return cls(Device(GPU, device_id))

    @classmethod
    def default_context(cls, settings: Optional[InferenceSettings] = None) -> "Context":
        settings = settings or get_settings()
        if settings.default_device == GPU:
            return cls.gpu(settings.device_id)
        return cls.cpu()

    @classmethod
    def from_name(cls, name: str, device_id: int = 0) -> "Context":
        name = name.strip().lower()
        if name == GPU:
            return cls.gpu(device_id)
        if name == CPU:
            return cls.cpu()
        raise ValueError(f"Unsupported device type: {name}")

    def __str__(self) -> str:
        return str(self.device)
