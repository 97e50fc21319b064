"""Filesystem helpers."""

from __future__ import annotations

import json
import os
from pathlib import Path


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path):
    import yaml

    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def dump_json(payload) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2)


def replace_file(source: Path, target: Path) -> None:
    os.replace(source, target)


def remove_if_exists(path: Path) -> None:
    if path.exists():
        path.unlink()
