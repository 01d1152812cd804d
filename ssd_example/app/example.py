"""Shared harness for example applications: arguments, logging, metrics report."""
from __future__ import annotations

import argparse
import logging
import sys
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence

import psutil

from inference_core.adapters.repository import ModelRepository
from inference_core.app.settings import InferenceSettings, get_settings
from inference_core.core.context import Context
from inference_core.core.exceptions import InferenceError
from inference_core.core.metrics import Metrics

from .config.settings import AppSettings, load_settings

LOGGER = logging.getLogger(__name__)


@dataclass
class Arguments:
    model_dir: str
    model_name: str
    image_file: Path
    log_dir: Optional[Path]
    iteration: int = 1
    duration_minutes: Optional[float] = None
    threshold: float = 0.2
    image_width: int = 512
    image_height: int = 512
    context: Context = field(default_factory=Context.cpu)
    output_filename: str = "ssd.jpg"
    model_artifacts: List[str] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "Arguments":
        return cls(
            model_dir=settings.model_dir,
            model_name=settings.model_name,
            image_file=settings.image_file,
            log_dir=settings.log_dir,
            iteration=settings.iteration,
            duration_minutes=settings.duration_minutes,
            threshold=settings.threshold,
            image_width=settings.image_width,
            image_height=settings.image_height,
            context=Context.from_name(settings.device, settings.device_id),
            output_filename=settings.output_filename,
            model_artifacts=[name.format(model_name=settings.model_name) for name in settings.model_artifacts],
        )

    def is_remote_model(self) -> bool:
        return self.model_dir.startswith(("http://", "https://"))


def build_arg_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("--model-dir", type=str, default=None, help="Model directory or repository URL")
    parser.add_argument("--model-name", type=str, default=None, help="Model file name without extension")
    parser.add_argument("--image", type=str, default=None, help="Image file to run inference on")
    parser.add_argument("--log-dir", type=str, default=None, help="Directory for output artifacts")
    parser.add_argument("--iteration", type=int, default=None, help="Number of inference iterations")
    parser.add_argument("--duration", type=float, default=None, help="Keep running for N minutes")
    parser.add_argument("--threshold", type=float, default=None, help="Detection probability threshold")
    parser.add_argument("--device", choices=["cpu", "gpu"], default=None, help="Device to run on")
    parser.add_argument("--log-format", choices=["text", "json"], default=None, help="Logging format")
    return parser


def resolve_settings(args: argparse.Namespace) -> AppSettings:
    overrides = {}
    if args.model_dir:
        overrides["model_dir"] = args.model_dir
    if args.model_name:
        overrides["model_name"] = args.model_name
    if args.image:
        overrides["image_file"] = Path(args.image)
    if args.log_dir:
        overrides["log_dir"] = Path(args.log_dir)
    if args.iteration is not None:
        overrides["iteration"] = args.iteration
    if args.duration is not None:
        overrides["duration_minutes"] = args.duration
    if args.threshold is not None:
        overrides["threshold"] = args.threshold
    if args.device:
        overrides["device"] = args.device
    if args.log_format:
        overrides["log_format"] = args.log_format

    return load_settings(**overrides)


def setup_logging(settings: AppSettings) -> None:
    log_level = logging.INFO
    if settings.log_format == "json":
        formatter = logging.Formatter('{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}')
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logging.basicConfig(level=log_level, handlers=[handler], force=True)


def print_progress(iteration: int, index: int) -> None:
    """Log progress roughly every tenth of the run."""

    if iteration <= 1:
        return
    step = max(1, iteration // 10)
    done = index + 1
    if done % step == 0 or done == iteration:
        LOGGER.info("Progress: %d/%d (%d%%)", done, iteration, done * 100 // iteration)


def collect_memory_info(metrics: Optional[Metrics]) -> None:
    if metrics is None:
        return
    info = psutil.Process().memory_info()
    metrics.add_metric("Rss", info.rss, unit="bytes")
    metrics.add_metric("Vms", info.vms, unit="bytes")


def resolve_model_dir(arguments: Arguments, settings: Optional[InferenceSettings] = None) -> Path:
    """Return a local model directory, downloading artifacts for remote models."""

    if not arguments.is_remote_model():
        return Path(arguments.model_dir).expanduser()
    settings = settings or get_settings()
    repository = ModelRepository(
        arguments.model_dir,
        settings.model_cache_dir,
        timeout=settings.download_timeout,
        max_retries=settings.download_retries,
    )
    with repository:
        return repository.prepare(arguments.model_name, arguments.model_artifacts)


class AbstractExample(ABC):
    """Parses arguments, runs :meth:`predict` and reports latency and memory."""

    description = "Inference example"

    @abstractmethod
    def predict(self, arguments: Arguments, metrics: Metrics, iteration: int) -> Any:
        """Run ``iteration`` predictions and return the example's result."""

    def run_example(self, argv: Optional[Sequence[str]] = None) -> int:
        args = build_arg_parser(self.description).parse_args(argv)
        try:
            settings = resolve_settings(args)
            setup_logging(settings)
            arguments = Arguments.from_settings(settings)
        except ValueError as exc:
            LOGGER.error("Invalid configuration for %s: %s", type(self).__name__, exc)
            return 1

        LOGGER.info("Running %s on %s", type(self).__name__, arguments.context)
        metrics = Metrics()
        try:
            result = None
            iterations = 0
            begin = time.perf_counter()
            deadline = begin + arguments.duration_minutes * 60 if arguments.duration_minutes else None
            while True:
                result = self.predict(arguments, metrics, arguments.iteration)
                iterations += arguments.iteration
                if deadline is None or time.perf_counter() >= deadline:
                    break
            elapsed = time.perf_counter() - begin
        except (InferenceError, OSError, ValueError) as exc:
            LOGGER.error("%s failed: %s", type(self).__name__, exc)
            return 1

        LOGGER.info("Result: %s", result)
        self.report(metrics, iterations, elapsed)
        return 0

    @staticmethod
    def report(metrics: Metrics, iterations: int, elapsed: float) -> None:
        if elapsed > 0:
            LOGGER.info("Throughput: %.2f iterations/s over %d iterations", iterations / elapsed, iterations)
        if metrics.has_metric("Total"):
            p50 = metrics.percentile("Total", 50).value / 1000
            p90 = metrics.percentile("Total", 90).value / 1000
            LOGGER.info("Latency P50: %.3f ms, P90: %.3f ms", p50, p90)
        if metrics.has_metric("Rss"):
            peak = max(metric.value for metric in metrics.get_metric("Rss"))
            LOGGER.info("Peak RSS: %.1f MB", peak / (1024 * 1024))
