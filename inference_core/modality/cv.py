"""Computer-vision types, image helpers and the base image translator."""
from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple, TypeVar, Union

import cv2
import numpy as np

from ..core.ndarray import NDArray, NDList, NDManager
from ..core.shape import DataType
from ..core.translator import Translator, TranslatorContext

LOGGER = logging.getLogger(__name__)

O = TypeVar("O")

IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned box in pixel space."""

    x: int
    y: int
    width: int
    height: int

    def bounds(self) -> "Rectangle":
        return self

    def corners(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.x + self.width, self.y + self.height


@dataclass(frozen=True)
class DetectedObject:
    class_name: str
    probability: float
    bounding_box: Rectangle


def load_image_from_file(path: Union[str, Path]) -> np.ndarray:
    """Read an image as a BGR uint8 array."""

    path = Path(path).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"Image file not found: {path}")
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise OSError(f"Unable to decode image: {path}")
    LOGGER.debug("Loaded image %s with shape %s", path, image.shape)
    return image


def resize_image(image: np.ndarray, width: int, height: int) -> np.ndarray:
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid target size {width}x{height}")
    return cv2.resize(image, (width, height), interpolation=cv2.INTER_LINEAR)


def to_ndarray(manager: NDManager, image: np.ndarray) -> NDArray:
    """Convert a BGR (or grayscale) image into an HWC RGB uint8 NDArray."""

    if image.ndim == 2:
        rgb = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    elif image.ndim == 3 and image.shape[2] == 4:
        rgb = cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)
    elif image.ndim == 3 and image.shape[2] == 3:
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    else:
        raise ValueError(f"Unsupported image shape: {image.shape}")
    return manager.from_numpy(rgb)


class ImageTranslator(Translator[np.ndarray, O]):
    """Turns an image into a normalized NCHW float batch of one."""

    def __init__(
        self,
        mean: Optional[Sequence[float]] = IMAGENET_MEAN,
        std: Optional[Sequence[float]] = IMAGENET_STD,
    ) -> None:
        self.mean = tuple(mean) if mean is not None else None
        self.std = tuple(std) if std is not None else None

    def process_input(self, ctx: TranslatorContext, data: np.ndarray) -> NDList:
        array = to_ndarray(ctx.manager, data)
        array = array.transpose(2, 0, 1).to_type(DataType.FLOAT32).div(255.0)
        array = self.normalize(ctx.manager, array)
        return NDList(array.expand_dims(0))

    def normalize(self, manager: NDManager, array: NDArray) -> NDArray:
        if self.mean is not None:
            array = array.sub(manager.create(self.mean, shape=(3, 1, 1)))
        if self.std is not None:
            array = array.div(manager.create(self.std, shape=(3, 1, 1)))
        return array

    @abstractmethod
    def process_output(self, ctx: TranslatorContext, outputs: NDList) -> O:
        """Convert network outputs into the result object."""
