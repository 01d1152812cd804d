"""Translator interface between domain objects and NDLists."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, Optional, TypeVar

from .context import Context
from .metrics import Metrics
from .ndarray import NDList, NDManager

if TYPE_CHECKING:  # pragma: no cover
    from .model import Model

I = TypeVar("I")
O = TypeVar("O")


@dataclass
class TranslatorContext:
    """Per-prediction state handed to translators.

    ``manager`` is closed once the prediction finishes, so arrays created from
    it must not escape ``process_output``.
    """

    model: "Model"
    manager: NDManager
    context: Context
    metrics: Optional[Metrics] = None


class Translator(ABC, Generic[I, O]):
    @abstractmethod
    def process_input(self, ctx: TranslatorContext, data: I) -> NDList:
        """Convert an input object into the arrays fed to the network."""

    @abstractmethod
    def process_output(self, ctx: TranslatorContext, outputs: NDList) -> O:
        """Convert network outputs into the result object."""
