"""Translator for single-shot detector outputs."""
from __future__ import annotations

import logging
from typing import List

import numpy as np

from inference_core.core.exceptions import TranslateError
from inference_core.core.model import load_synset
from inference_core.core.ndarray import NDList
from inference_core.core.translator import TranslatorContext
from inference_core.modality.cv import DetectedObject, ImageTranslator, Rectangle, resize_image

LOGGER = logging.getLogger(__name__)

SYNSET_FILE = "synset.txt"


class SsdTranslator(ImageTranslator[List[DetectedObject]]):
    """Resizes the input image and turns detection rows into DetectedObjects.

    Each output row is ``[class_id, probability, xmin, ymin, xmax, ymax]``
    with coordinates relative to the image size. OpenCV ``DetectionOutput``
    rows carry a leading image id, which is dropped.
    """

    def __init__(self, threshold: float = 0.2, image_width: int = 512, image_height: int = 512, **kwargs) -> None:
        super().__init__(**kwargs)
        self.threshold = threshold
        self.image_width = image_width
        self.image_height = image_height

    def process_input(self, ctx: TranslatorContext, data: np.ndarray) -> NDList:
        image = resize_image(data, self.image_width, self.image_height)
        return super().process_input(ctx, image)

    def process_output(self, ctx: TranslatorContext, outputs: NDList) -> List[DetectedObject]:
        synset = ctx.model.get_artifact(SYNSET_FILE, load_synset)
        rows = outputs.head().get(0)
        if rows.shape.dimension() == 3:
            # DetectionOutput layers emit (1, 1, N, 7)
            rows = rows.get(0)
        if rows.shape.dimension() != 2 or rows.shape.get(1) not in (6, 7):
            raise TranslateError(f"Unexpected detection output shape: {outputs.head().shape}")

        detections: List[DetectedObject] = []
        for index in range(rows.shape.head()):
            with rows.get(index) as item:
                values = item.to_float_array()
            if values.size == 7:
                values = values[1:]
            class_id = int(values[0])
            probability = float(values[1])
            if class_id <= 0 or probability <= self.threshold:
                continue
            if class_id >= len(synset):
                raise TranslateError(f"Unexpected index: {class_id}")

            x = values[2] * self.image_width
            y = values[3] * self.image_height
            w = values[4] * self.image_width - x
            h = values[5] * self.image_height - y
            rect = Rectangle(int(x), int(y), int(w), int(h))
            detections.append(DetectedObject(synset[class_id], probability, rect))
        LOGGER.debug("Translated %d detections above threshold %.2f", len(detections), self.threshold)
        return detections
