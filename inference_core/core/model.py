"""Model loading and lazily cached model artifacts."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

import yaml

from ..adapters.opencv_engine import OpenCvBlock, find_model_files
from .context import Context
from .ndarray import NDManager

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def load_synset(path: Path) -> List[str]:
    """Read a label file with one class name per line."""

    with path.open("r", encoding="utf-8") as handle:
        return [line.strip() for line in handle if line.strip()]


def load_properties(model_dir: Path, model_name: str) -> Dict[str, Any]:
    for candidate in (model_dir / f"{model_name}.yaml", model_dir / "model.yaml"):
        if not candidate.is_file():
            continue
        with candidate.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
        if not isinstance(payload, dict):
            raise ValueError(f"Model properties in {candidate} must be a mapping")
        LOGGER.debug("Loaded model properties from %s", candidate)
        return payload
    return {}


class Model:
    """A loaded network plus the files that ship next to it."""

    def __init__(
        self,
        name: str,
        model_dir: Path,
        block: OpenCvBlock,
        context: Context,
        properties: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.name = name
        self.model_dir = model_dir
        self.block = block
        self.context = context
        self.properties: Dict[str, Any] = properties or {}
        self.manager = NDManager.new_base_manager(device=context.device)
        self._artifacts: Dict[str, Any] = {}

    @classmethod
    def load_model(
        cls,
        model_dir: Union[str, Path],
        model_name: str,
        context: Optional[Context] = None,
    ) -> "Model":
        model_dir = Path(model_dir).expanduser()
        context = context or Context.default_context()
        fmt, weights, config = find_model_files(model_dir, model_name)
        properties = load_properties(model_dir, model_name)
        block = OpenCvBlock.load(
            weights,
            config,
            input_names=properties.get("input_names"),
            output_names=properties.get("output_names"),
        )
        block.to_context(context)
        LOGGER.info("Loaded %s model %s on %s", fmt.name, model_name, context)
        return cls(model_name, model_dir, block, context, properties)

    def get_artifact(self, name: str, loader: Callable[[Path], T]) -> T:
        """Load ``name`` from the model directory once and cache the result."""

        if name in self._artifacts:
            return self._artifacts[name]
        path = self.model_dir / name
        if not path.is_file():
            raise FileNotFoundError(f"Artifact {name} not found in {self.model_dir}")
        artifact = loader(path)
        self._artifacts[name] = artifact
        return artifact

    def get_property(self, key: str, default: Any = None) -> Any:
        return self.properties.get(key, default)

    def close(self) -> None:
        self._artifacts.clear()
        self.manager.close()

    def __enter__(self) -> "Model":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Model(name={self.name!r}, dir={str(self.model_dir)!r}, context={self.context})"
