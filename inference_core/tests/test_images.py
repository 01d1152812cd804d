from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
import pytest

from inference_core.core.context import Context
from inference_core.core.model import Model
from inference_core.core.ndarray import NDList, NDManager
from inference_core.core.translator import TranslatorContext
from inference_core.modality.cv import (
    DetectedObject,
    ImageTranslator,
    Rectangle,
    load_image_from_file,
    resize_image,
    to_ndarray,
)


class ShapeTranslator(ImageTranslator[tuple]):
    def process_output(self, ctx: TranslatorContext, outputs: NDList) -> tuple:
        return outputs.head().shape.dims


def build_context(manager: NDManager, tmp_path: Path) -> TranslatorContext:
    model = Model("toy", tmp_path, block=None, context=Context.cpu())  # type: ignore[arg-type]
    return TranslatorContext(model=model, manager=manager, context=Context.cpu())


def test_load_image_from_file(tmp_path: Path) -> None:
    target = tmp_path / "image.png"
    image = np.zeros((8, 6, 3), dtype=np.uint8)
    image[:, :, 2] = 255
    cv2.imwrite(str(target), image)

    loaded = load_image_from_file(target)

    assert loaded.shape == (8, 6, 3)
    assert loaded[0, 0].tolist() == [0, 0, 255]


def test_load_image_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_image_from_file(tmp_path / "missing.jpg")

    corrupt = tmp_path / "corrupt.jpg"
    corrupt.write_bytes(b"not an image")
    with pytest.raises(OSError):
        load_image_from_file(corrupt)


def test_resize_and_convert_to_rgb() -> None:
    manager = NDManager.new_base_manager()
    image = np.zeros((4, 4, 3), dtype=np.uint8)
    image[:, :, 0] = 200  # blue channel in BGR

    resized = resize_image(image, 10, 6)
    array = to_ndarray(manager, resized)

    assert resized.shape == (6, 10, 3)
    assert array.shape.dims == (6, 10, 3)
    assert array.get((0, 0)).to_int_array().tolist() == [0, 0, 200]


def test_image_translator_builds_normalized_batch(tmp_path: Path) -> None:
    manager = NDManager.new_base_manager()
    ctx = build_context(manager, tmp_path)
    image = np.full((5, 7, 3), 255, dtype=np.uint8)

    translator = ShapeTranslator(mean=None, std=None)
    batch = translator.process_input(ctx, image).head()

    assert batch.shape.dims == (1, 3, 5, 7)
    assert batch.all_close(np.ones((1, 3, 5, 7), dtype=np.float32))
    assert translator.process_output(ctx, NDList(batch)) == (1, 3, 5, 7)


def test_image_translator_applies_mean_and_std(tmp_path: Path) -> None:
    manager = NDManager.new_base_manager()
    ctx = build_context(manager, tmp_path)
    image = np.zeros((2, 2, 3), dtype=np.uint8)

    batch = ShapeTranslator(mean=(0.5, 0.5, 0.5), std=(0.25, 0.5, 1.0)).process_input(ctx, image).head()
    values = batch.to_numpy()

    assert np.allclose(values[0, 0], -2.0)
    assert np.allclose(values[0, 1], -1.0)
    assert np.allclose(values[0, 2], -0.5)


def test_rectangle_and_detected_object() -> None:
    rect = Rectangle(10, 20, 30, 40)
    detection = DetectedObject("dog", 0.9, rect)

    assert rect.corners() == (10, 20, 40, 60)
    assert detection.bounding_box.bounds() is rect
