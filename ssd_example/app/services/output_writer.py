"""Render detections onto the input image and export it."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Tuple

import cv2
import numpy as np

from inference_core.modality.cv import DetectedObject, Rectangle, resize_image

LOGGER = logging.getLogger(__name__)

WHITE: Tuple[int, int, int] = (255, 255, 255)
BLACK: Tuple[int, int, int] = (0, 0, 0)
FONT = cv2.FONT_HERSHEY_SIMPLEX
FONT_SCALE = 0.5
FONT_THICKNESS = 1


def draw_text(image: np.ndarray, text: str, rect: Rectangle, stroke: int, padding: int) -> None:
    """Draw ``text`` on a white label anchored at the box's top-left corner."""

    (text_width, text_height), baseline = cv2.getTextSize(text, FONT, FONT_SCALE, FONT_THICKNESS)
    x = rect.x + stroke // 2
    y = rect.y + stroke // 2
    width = text_width + padding * 2 - stroke // 2
    height = text_height + baseline * 2
    cv2.rectangle(image, (x, y), (x + width, y + height), WHITE, thickness=cv2.FILLED)
    cv2.putText(
        image,
        text,
        (x + padding, y + text_height + baseline // 2),
        FONT,
        FONT_SCALE,
        BLACK,
        FONT_THICKNESS,
        lineType=cv2.LINE_AA,
    )


def annotate_image(
    image: np.ndarray,
    detections: Iterable[DetectedObject],
    width: int = 512,
    height: int = 512,
    stroke: int = 2,
    padding: int = 4,
) -> np.ndarray:
    """Return a resized copy of ``image`` with every detection outlined and labeled."""

    output = resize_image(image, width, height)
    for detection in detections:
        rect = detection.bounding_box.bounds()
        x1, y1, x2, y2 = rect.corners()
        cv2.rectangle(output, (x1, y1), (x2, y2), WHITE, stroke)
        draw_text(output, detection.class_name, rect, stroke, padding)
    return output


def draw_bounding_box(
    image: np.ndarray,
    detections: Iterable[DetectedObject],
    log_dir: Optional[Path],
    filename: str = "ssd.jpg",
    width: int = 512,
    height: int = 512,
) -> Optional[Path]:
    """Write the annotated image to ``log_dir``; nothing is written without one."""

    if log_dir is None:
        return None

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)

    annotated = annotate_image(image, detections, width, height)
    target = directory / filename
    if not cv2.imwrite(str(target), annotated):
        raise OSError(f"Unable to write image to {target}")
    LOGGER.info("Saved annotated image %s", target)
    return target
