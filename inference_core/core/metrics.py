"""Named metric collection used by predictors and example harnesses."""
from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from statistics import mean
from typing import DefaultDict, Dict, List, Optional


@dataclass
class Metric:
    name: str
    value: float
    unit: str = "count"
    timestamp: float = field(default_factory=time.time)


class Metrics:
    """Collects metric samples grouped by name."""

    def __init__(self) -> None:
        self._metrics: DefaultDict[str, List[Metric]] = defaultdict(list)

    def add_metric(self, name: str, value: float, unit: str = "count") -> Metric:
        metric = Metric(name=name, value=float(value), unit=unit)
        self._metrics[name].append(metric)
        return metric

    def has_metric(self, name: str) -> bool:
        return bool(self._metrics.get(name))

    def get_metric(self, name: str) -> List[Metric]:
        return list(self._metrics.get(name, []))

    def names(self) -> List[str]:
        return [name for name, items in self._metrics.items() if items]

    def latest(self, name: str) -> Optional[Metric]:
        items = self._metrics.get(name)
        return items[-1] if items else None

    def mean(self, name: str) -> float:
        items = self._require(name)
        return mean(metric.value for metric in items)

    def percentile(self, name: str, percentile: int) -> Metric:
        """Return the sample at the given percentile (nearest-rank on sorted values)."""

        if not 0 <= percentile <= 100:
            raise ValueError(f"Percentile must be within [0, 100], got {percentile}")
        items = sorted(self._require(name), key=lambda metric: metric.value)
        index = int(len(items) * percentile / 100)
        return items[min(index, len(items) - 1)]

    def summary(self) -> Dict[str, Dict[str, float]]:
        report: Dict[str, Dict[str, float]] = {}
        for name in self.names():
            report[name] = {
                "count": float(len(self._metrics[name])),
                "mean": self.mean(name),
                "p50": self.percentile(name, 50).value,
                "p90": self.percentile(name, 90).value,
            }
        return report

    def _require(self, name: str) -> List[Metric]:
        items = self._metrics.get(name)
        if not items:
            raise KeyError(f"Metric not found: {name}")
        return items
