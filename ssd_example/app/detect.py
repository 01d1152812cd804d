"""Entry point for the SSD object-detection example."""
from __future__ import annotations

import logging
import signal
import sys
from typing import List, Optional

from inference_core.core.metrics import Metrics
from inference_core.core.model import Model
from inference_core.core.predictor import Predictor
from inference_core.modality.cv import DetectedObject, load_image_from_file

from .example import AbstractExample, Arguments, collect_memory_info, print_progress, resolve_model_dir
from .services.output_writer import draw_bounding_box
from .services.ssd_translator import SsdTranslator

LOGGER = logging.getLogger(__name__)


class SsdExample(AbstractExample):
    description = "Single-shot detector example"

    def predict(self, arguments: Arguments, metrics: Metrics, iteration: int) -> Optional[DetectedObject]:
        image = load_image_from_file(arguments.image_file)
        model_dir = resolve_model_dir(arguments)

        model = Model.load_model(model_dir, arguments.model_name, arguments.context)
        translator = SsdTranslator(arguments.threshold, arguments.image_width, arguments.image_height)

        detections: List[DetectedObject] = []
        try:
            with Predictor.new_instance(model, translator, arguments.context) as ssd:
                ssd.set_metrics(metrics)
                for index in range(iteration):
                    detections = ssd.predict(image)
                    print_progress(iteration, index)
                    collect_memory_info(metrics)
        finally:
            model.close()

        LOGGER.info("Detected %d objects", len(detections))
        draw_bounding_box(
            image,
            detections,
            arguments.log_dir,
            filename=arguments.output_filename,
            width=arguments.image_width,
            height=arguments.image_height,
        )
        return detections[0] if detections else None


def main() -> None:
    def handle_interrupt(signum: int, frame: Optional[object]) -> None:  # pragma: no cover - signal handling
        LOGGER.warning("Received interrupt signal (%d), shutting down", signum)
        sys.exit(130)

    signal.signal(signal.SIGINT, handle_interrupt)
    sys.exit(SsdExample().run_example())


if __name__ == "__main__":  # pragma: no cover
    main()
