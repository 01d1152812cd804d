from __future__ import annotations

import itertools
import logging
from pathlib import Path
from typing import List

import cv2
import numpy as np
import pytest

from inference_core.app.settings import InferenceSettings
from inference_core.core.context import Context
from inference_core.core.metrics import Metrics
from inference_core.core.model import Model
from inference_core.core.ndarray import NDList, NDManager
from ssd_example.app import detect, example
from ssd_example.app.config.settings import load_settings
from ssd_example.app.example import AbstractExample, Arguments, build_arg_parser, print_progress, resolve_model_dir, resolve_settings


class FakeSsdBlock:
    def __init__(self) -> None:
        self.input_shapes: List[tuple] = []

    def to_context(self, context: Context) -> None:
        return None

    def forward(self, inputs: NDList, manager: NDManager) -> NDList:
        self.input_shapes.append(inputs.head().shape.dims)
        rows = [
            [2, 0.9, 0.25, 0.125, 0.75, 0.5],
            [1, 0.4, 0.0, 0.0, 0.5, 0.5],
        ]
        return NDList(manager.create(rows, shape=(1, 2, 6)))


@pytest.fixture()
def model_dir(tmp_path: Path) -> Path:
    target = tmp_path / "model"
    target.mkdir()
    (target / "synset.txt").write_text("background\nbicycle\ndog\n", encoding="utf-8")
    return target


@pytest.fixture()
def image_file(tmp_path: Path) -> Path:
    target = tmp_path / "input.jpg"
    cv2.imwrite(str(target), np.full((240, 320, 3), 80, dtype=np.uint8))
    return target


@pytest.fixture()
def fake_model(monkeypatch, model_dir: Path) -> List[Model]:
    loaded: List[Model] = []

    def fake_load_model(directory, model_name, context=None):
        model = Model(model_name, Path(directory), FakeSsdBlock(), context or Context.cpu())
        loaded.append(model)
        return model

    monkeypatch.setattr(detect.Model, "load_model", staticmethod(fake_load_model))
    return loaded


def test_predict_runs_iterations_and_draws(
    tmp_path: Path, model_dir: Path, image_file: Path, fake_model: List[Model]
) -> None:
    arguments = Arguments(
        model_dir=str(model_dir),
        model_name="ssd",
        image_file=image_file,
        log_dir=tmp_path / "out",
        iteration=3,
    )
    metrics = Metrics()

    result = detect.SsdExample().predict(arguments, metrics, arguments.iteration)

    assert result.class_name == "dog"
    assert result.probability == pytest.approx(0.9)
    assert (tmp_path / "out" / "ssd.jpg").exists()
    assert len(metrics.get_metric("Total")) == 3
    assert len(metrics.get_metric("Rss")) == 3
    (model,) = fake_model
    assert model.block.input_shapes == [(1, 3, 512, 512)] * 3
    assert model.manager.is_closed


def test_predict_without_detections_returns_none(
    tmp_path: Path, model_dir: Path, image_file: Path, fake_model: List[Model]
) -> None:
    arguments = Arguments(
        model_dir=str(model_dir),
        model_name="ssd",
        image_file=image_file,
        log_dir=None,
        threshold=0.95,
    )

    assert detect.SsdExample().predict(arguments, Metrics(), 1) is None
    assert not (tmp_path / "ssd.jpg").exists()


def test_run_example_end_to_end(
    tmp_path: Path, model_dir: Path, image_file: Path, fake_model: List[Model], monkeypatch
) -> None:
    monkeypatch.setattr(example, "setup_logging", lambda settings: None)
    argv = [
        "--model-dir",
        str(model_dir),
        "--model-name",
        "ssd",
        "--image",
        str(image_file),
        "--log-dir",
        str(tmp_path / "logs"),
        "--iteration",
        "2",
    ]

    assert detect.SsdExample().run_example(argv) == 0
    assert (tmp_path / "logs" / "ssd.jpg").exists()


def test_run_example_reports_missing_image(
    tmp_path: Path, model_dir: Path, fake_model: List[Model], monkeypatch
) -> None:
    monkeypatch.setattr(example, "setup_logging", lambda settings: None)
    argv = ["--model-dir", str(model_dir), "--image", str(tmp_path / "missing.jpg")]

    assert detect.SsdExample().run_example(argv) == 1
    assert fake_model == []


def test_resolve_settings_applies_cli_overrides(tmp_path: Path) -> None:
    args = build_arg_parser("test").parse_args(
        ["--model-dir", "http://models.local", "--threshold", "0.5", "--device", "gpu", "--log-format", "json"]
    )

    settings = resolve_settings(args)
    arguments = Arguments.from_settings(settings)

    assert settings.threshold == 0.5
    assert settings.log_format == "json"
    assert arguments.context == Context.gpu(0)
    assert arguments.is_remote_model()
    assert arguments.model_artifacts == [f"{settings.model_name}.onnx", "synset.txt"]


def test_resolve_model_dir_downloads_remote_models(tmp_path: Path, monkeypatch) -> None:
    calls = []

    class FakeRepository:
        def __init__(self, base_url, cache_dir, **kwargs) -> None:
            self.base_url = base_url
            self.cache_dir = cache_dir

        def prepare(self, model_name, artifacts):
            calls.append((self.base_url, model_name, list(artifacts)))
            return self.cache_dir / model_name

        def __enter__(self):
            return self

        def __exit__(self, *exc_info) -> None:
            return None

    monkeypatch.setattr(example, "ModelRepository", FakeRepository)
    arguments = Arguments(
        model_dir="https://models.local/zoo",
        model_name="ssd",
        image_file=tmp_path / "image.jpg",
        log_dir=None,
        model_artifacts=["ssd.onnx", "synset.txt"],
    )

    local = resolve_model_dir(arguments, InferenceSettings(model_cache_dir=tmp_path / "cache"))

    assert local == tmp_path / "cache" / "ssd"
    assert calls == [("https://models.local/zoo", "ssd", ["ssd.onnx", "synset.txt"])]


def test_resolve_model_dir_keeps_local_paths(tmp_path: Path) -> None:
    arguments = Arguments(model_dir=str(tmp_path), model_name="ssd", image_file=tmp_path / "x.jpg", log_dir=None)

    assert resolve_model_dir(arguments) == tmp_path


def test_print_progress_logs_every_tenth(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="ssd_example.app.example"):
        for index in range(20):
            print_progress(20, index)
        print_progress(1, 0)

    messages = [record.getMessage() for record in caplog.records]
    assert len(messages) == 10
    assert messages[-1] == "Progress: 20/20 (100%)"


class CountingExample(AbstractExample):
    def __init__(self) -> None:
        self.calls = 0

    def predict(self, arguments: Arguments, metrics: Metrics, iteration: int) -> int:
        self.calls += 1
        for _ in range(iteration):
            metrics.add_metric("Total", 2000.0, unit="microseconds")
        return self.calls


def test_run_example_rejects_invalid_threshold(monkeypatch, caplog) -> None:
    monkeypatch.setattr(example, "setup_logging", lambda settings: None)
    runner = CountingExample()

    with caplog.at_level(logging.ERROR, logger="ssd_example.app.example"):
        assert runner.run_example(["--threshold", "1.5"]) == 1

    assert runner.calls == 0
    assert "Invalid configuration" in caplog.text


def test_run_example_rejects_unknown_device(monkeypatch) -> None:
    monkeypatch.setattr(example, "setup_logging", lambda settings: None)
    monkeypatch.setenv("SSD_DEVICE", "tpu")
    runner = CountingExample()

    assert runner.run_example([]) == 1
    assert runner.calls == 0


def test_device_setting_is_normalized() -> None:
    assert load_settings(device=" GPU ").device == "gpu"


def test_run_example_repeats_until_duration_elapses(monkeypatch, caplog) -> None:
    monkeypatch.setattr(example, "setup_logging", lambda settings: None)
    ticks = itertools.count(start=0, step=30)
    monkeypatch.setattr(example.time, "perf_counter", lambda: next(ticks))
    runner = CountingExample()

    with caplog.at_level(logging.INFO, logger="ssd_example.app.example"):
        assert runner.run_example(["--duration", "1", "--iteration", "3"]) == 0

    # clock reads 0 at start, then 30 and 60 after each run against a 60s deadline
    assert runner.calls == 2
    messages = [record.getMessage() for record in caplog.records]
    assert "Result: 2" in messages
    assert any(message.endswith("over 6 iterations") for message in messages)
