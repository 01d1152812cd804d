#!/usr/bin/env python3
"""Fetch SSD model artifacts from a remote repository into a local directory."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from inference_core.adapters.repository import ModelRepository
from inference_core.app.settings import get_settings

DEFAULT_MODEL = "ssd_512_resnet50_v1_voc"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download SSD model artifacts")
    parser.add_argument("--url", type=str, default=None, help="Repository base URL")
    parser.add_argument("--model-name", type=str, default=DEFAULT_MODEL, help="Model name in the repository")
    parser.add_argument(
        "--artifact",
        action="append",
        default=None,
        help="Artifact to fetch (repeatable); defaults to <model>.onnx and synset.txt",
    )
    parser.add_argument("--output", type=Path, default=None, help="Cache directory")
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    args = parse_args()
    settings = get_settings()
    url = args.url or settings.repository_url
    if not url:
        raise SystemExit("No repository URL given; pass --url or set INFERENCE_REPOSITORY_URL")
    artifacts = args.artifact or [f"{args.model_name}.onnx", "synset.txt"]
    cache_dir = args.output or settings.model_cache_dir
    with ModelRepository(url, cache_dir, timeout=settings.download_timeout, max_retries=settings.download_retries) as repo:
        target = repo.prepare(args.model_name, artifacts)
    print(f"Model artifacts available in {target}")


if __name__ == "__main__":
    main()
