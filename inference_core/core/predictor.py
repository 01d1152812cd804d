"""Predictor: runs a translator and a model's block for repeated inference."""
from __future__ import annotations

import logging
import time
from typing import Generic, Iterable, List, Optional, TypeVar

from .context import Context
from .exceptions import IllegalStateError, InferenceError, TranslateError
from .metrics import Metrics
from .model import Model
from .ndarray import NDManager
from .translator import Translator, TranslatorContext

LOGGER = logging.getLogger(__name__)

I = TypeVar("I")
O = TypeVar("O")


def _elapsed_us(start: float) -> float:
    return (time.perf_counter() - start) * 1_000_000


class Predictor(Generic[I, O]):
    """Stateful wrapper running inference calls against a loaded model.

    Use it as a context manager so the arrays it owns are released whatever
    way the inference loop exits.
    """

    def __init__(self, model: Model, translator: Translator[I, O], context: Optional[Context] = None) -> None:
        self.model = model
        self.translator = translator
        self.context = context or model.context
        self._manager: Optional[NDManager] = model.manager.new_sub_manager(device=self.context.device)
        self._metrics: Optional[Metrics] = None
        self._moved = self.context != model.context
        if self._moved:
            model.block.to_context(self.context)

    @classmethod
    def new_instance(
        cls, model: Model, translator: Translator[I, O], context: Optional[Context] = None
    ) -> "Predictor[I, O]":
        return cls(model, translator, context)

    def set_metrics(self, metrics: Metrics) -> None:
        self._metrics = metrics

    def predict(self, data: I) -> O:
        manager = self._require_manager()
        with manager.new_sub_manager() as scope:
            ctx = TranslatorContext(model=self.model, manager=scope, context=self.context, metrics=self._metrics)
            begin = time.perf_counter()
            try:
                inputs = self.translator.process_input(ctx, data)
            except InferenceError:
                raise
            except Exception as exc:
                raise TranslateError(f"Input translation failed: {exc}") from exc
            self._record("Preprocess", begin)

            start = time.perf_counter()
            outputs = self.model.block.forward(inputs, scope)
            self._record("Inference", start)

            start = time.perf_counter()
            try:
                result = self.translator.process_output(ctx, outputs)
            except InferenceError:
                raise
            except OSError as exc:
                raise TranslateError(f"Unable to load model artifact: {exc}") from exc
            except Exception as exc:
                raise TranslateError(f"Output translation failed: {exc}") from exc
            self._record("Postprocess", start)
            self._record("Total", begin)
        return result

    def batch_predict(self, inputs: Iterable[I]) -> List[O]:
        return [self.predict(item) for item in inputs]

    def close(self) -> None:
        if self._manager is None:
            return
        self._manager.close()
        self._manager = None
        if self._moved:
            self.model.block.to_context(self.model.context)
        LOGGER.debug("Predictor for %s closed", self.model.name)

    def _require_manager(self) -> NDManager:
        if self._manager is None:
            raise IllegalStateError("Predictor has been closed")
        return self._manager

    def _record(self, name: str, start: float) -> None:
        if self._metrics is not None:
            self._metrics.add_metric(name, _elapsed_us(start), unit="microseconds")

    def __enter__(self) -> "Predictor[I, O]":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
