"""File-based persistence helpers for locally stored collections."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from ..config import settings


class FileStorage:
    """Thin wrapper around the data root for reading and writing JSON documents."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.collections_root = self.root / "collections"
        self.collections_root.mkdir(parents=True, exist_ok=True)

    def collection_path(self, name: str) -> Path:
        return self.collections_root / f"{name}.json"

    def read_json(self, path: Path, default: Any = None) -> Any:
        if not path.exists():
            return default
        with path.open("r", encoding="utf-8") as handle:
            content = handle.read()
        if not content.strip():
            return default
        return json.loads(content)

    def write_json(self, path: Path, data: Any, *, indent: int = 2) -> None:
        """Write through a temp file so readers never see a half-written document."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, indent=indent)
            os.replace(temp_name, path)
        except BaseException:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise
