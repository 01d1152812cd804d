"""OpenCV DNN engine: loads network files and runs forward passes on NDLists."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..core.context import Context
from ..core.exceptions import EngineError, ModelNotFoundError
from ..core.ndarray import NDList, NDManager

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelFormat:
    name: str
    weights_suffix: str
    config_suffix: Optional[str] = None
    config_required: bool = False


SUPPORTED_FORMATS: Tuple[ModelFormat, ...] = (
    ModelFormat("onnx", ".onnx"),
    ModelFormat("caffe", ".caffemodel", ".prototxt", config_required=True),
    ModelFormat("tensorflow", ".pb", ".pbtxt"),
    ModelFormat("openvino", ".bin", ".xml", config_required=True),
    ModelFormat("darknet", ".weights", ".cfg", config_required=True),
    ModelFormat("torch", ".t7"),
    ModelFormat("torch", ".net"),
)


def find_model_files(model_dir: Path, model_name: str) -> Tuple[ModelFormat, Path, Optional[Path]]:
    """Locate ``model_name`` in ``model_dir`` using the first matching format."""

    if not model_dir.is_dir():
        raise ModelNotFoundError(f"Model directory does not exist: {model_dir}")
    for fmt in SUPPORTED_FORMATS:
        weights = model_dir / f"{model_name}{fmt.weights_suffix}"
        if not weights.is_file():
            continue
        config: Optional[Path] = None
        if fmt.config_suffix:
            candidate = model_dir / f"{model_name}{fmt.config_suffix}"
            if candidate.is_file():
                config = candidate
            elif fmt.config_required:
                LOGGER.debug("Skipping %s: missing %s", weights, candidate)
                continue
        return fmt, weights, config
    suffixes = ", ".join(fmt.weights_suffix for fmt in SUPPORTED_FORMATS)
    raise ModelNotFoundError(f"No model named {model_name!r} ({suffixes}) found in {model_dir}")


def _backend_for(context: Context) -> Tuple[int, int]:
    if context.device.is_gpu():
        return cv2.dnn.DNN_BACKEND_CUDA, cv2.dnn.DNN_TARGET_CUDA
    return cv2.dnn.DNN_BACKEND_OPENCV, cv2.dnn.DNN_TARGET_CPU


class OpenCvBlock:
    """Executable network held by a Model."""

    def __init__(
        self,
        net: "cv2.dnn.Net",
        input_names: Optional[Sequence[str]] = None,
        output_names: Optional[Sequence[str]] = None,
    ) -> None:
        self._net = net
        self.input_names: List[str] = list(input_names or [])
        self.output_names: List[str] = list(output_names or [])
        if not self.output_names:
            self.output_names = list(net.getUnconnectedOutLayersNames())

    @classmethod
    def load(
        cls,
        weights: Path,
        config: Optional[Path] = None,
        *,
        input_names: Optional[Sequence[str]] = None,
        output_names: Optional[Sequence[str]] = None,
    ) -> "OpenCvBlock":
        LOGGER.info("Loading network from %s", weights)
        try:
            net = cv2.dnn.readNet(str(weights), str(config) if config else "")
        except cv2.error as exc:
            raise EngineError(f"Unable to load network {weights}: {exc}") from exc
        if net.empty():
            raise EngineError(f"Network loaded from {weights} is empty")
        return cls(net, input_names=input_names, output_names=output_names)

    def to_context(self, context: Context) -> None:
        backend, target = _backend_for(context)
        self._net.setPreferableBackend(backend)
        self._net.setPreferableTarget(target)
        LOGGER.debug("Network placed on %s", context)

    def forward(self, inputs: NDList, manager: NDManager) -> NDList:
        """Run one forward pass; outputs are attached to ``manager``."""

        if len(inputs) == 0:
            raise EngineError("Forward pass requires at least one input")
        if len(inputs) > 1 and len(self.input_names) != len(inputs):
            raise EngineError(
                f"Network expects named inputs for {len(inputs)} arrays, got names {self.input_names}"
            )
        try:
            for idx, array in enumerate(inputs):
                blob = array.to_numpy().astype(np.float32, copy=False)
                if self.input_names:
                    self._net.setInput(blob, self.input_names[idx])
                else:
                    self._net.setInput(blob)
            outputs = self._net.forward(self.output_names)
        except cv2.error as exc:
            raise EngineError(f"Forward pass failed: {exc}") from exc
        return NDList(manager.from_numpy(np.asarray(output)) for output in outputs)
