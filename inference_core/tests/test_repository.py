from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

from inference_core.adapters import repository as repository_module
from inference_core.adapters.repository import ModelRepository
from inference_core.core.exceptions import RepositoryError


def build_response(content: bytes) -> MagicMock:
    response = MagicMock()
    response.content = content
    response.raise_for_status.return_value = None
    return response


def test_prepare_downloads_missing_artifacts(tmp_path: Path) -> None:
    session = MagicMock()
    session.get.return_value = build_response(b"payload")
    cached = tmp_path / "ssd" / "synset.txt"
    cached.parent.mkdir(parents=True)
    cached.write_text("background\n")

    repo = ModelRepository("http://models.local/zoo/", tmp_path, session=session)
    model_dir = repo.prepare("ssd", ["ssd.onnx", "synset.txt"])

    assert model_dir == tmp_path / "ssd"
    assert (model_dir / "ssd.onnx").read_bytes() == b"payload"
    assert cached.read_text() == "background\n"
    session.get.assert_called_once_with("http://models.local/zoo/ssd/ssd.onnx", timeout=60.0)


def test_prepare_retries_then_fails(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(repository_module.time, "sleep", lambda _: None)
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("down")

    repo = ModelRepository("http://models.local", tmp_path, session=session, max_retries=2)
    with pytest.raises(RepositoryError):
        repo.prepare("ssd", ["ssd.onnx"])

    assert session.get.call_count == 3
    assert not (tmp_path / "ssd" / "ssd.onnx").exists()


def test_prepare_recovers_after_transient_error(tmp_path: Path, monkeypatch) -> None:
    sleeps = []
    monkeypatch.setattr(repository_module.time, "sleep", sleeps.append)
    session = MagicMock()
    session.get.side_effect = [requests.Timeout("slow"), build_response(b"ok")]

    with ModelRepository("http://models.local", tmp_path, session=session, backoff=0.5) as repo:
        repo.prepare("ssd", ["synset.txt"])

    assert (tmp_path / "ssd" / "synset.txt").read_bytes() == b"ok"
    assert sleeps == [0.5]
    session.close.assert_called_once()


def build_http_error(status: int) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status}", response=response)
    return response


def test_prepare_does_not_retry_client_errors(tmp_path: Path, monkeypatch) -> None:
    sleeps = []
    monkeypatch.setattr(repository_module.time, "sleep", sleeps.append)
    session = MagicMock()
    session.get.return_value = build_http_error(404)

    repo = ModelRepository("http://models.local", tmp_path, session=session, max_retries=3)
    with pytest.raises(RepositoryError, match="HTTP 404"):
        repo.prepare("ssd", ["ssd.onnx"])

    assert session.get.call_count == 1
    assert sleeps == []


def test_prepare_retries_server_errors(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(repository_module.time, "sleep", lambda _: None)
    session = MagicMock()
    session.get.side_effect = [build_http_error(503), build_response(b"ok")]

    ModelRepository("http://models.local", tmp_path, session=session).prepare("ssd", ["ssd.onnx"])

    assert session.get.call_count == 2
    assert (tmp_path / "ssd" / "ssd.onnx").read_bytes() == b"ok"


def test_prepare_removes_partial_file_when_write_fails(tmp_path: Path, monkeypatch) -> None:
    def fail_replace(self, target):
        raise OSError("disk full")

    monkeypatch.setattr(repository_module.Path, "replace", fail_replace)
    session = MagicMock()
    session.get.return_value = build_response(b"payload")

    with pytest.raises(OSError, match="disk full"):
        ModelRepository("http://models.local", tmp_path, session=session).prepare("ssd", ["ssd.onnx"])

    assert list((tmp_path / "ssd").iterdir()) == []
