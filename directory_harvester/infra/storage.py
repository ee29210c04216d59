"""Output directory abstraction for persisted datasets."""

from __future__ import annotations

import os
import re
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator

DATASET_SUFFIX = ".csv"


def slugify(name: str) -> str:
    slug = re.sub(r"[^0-9A-Za-z_-]+", "_", name.strip()).strip("_")
    return slug or "dataset"


class OutputDirectory:
    """Own one base directory and every dataset file below it."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def filename_for(self, identifier: str) -> str:
        return f"{slugify(identifier)}{DATASET_SUFFIX}"

    def path_for(self, identifier: str) -> Path:
        return self.base_path / self.filename_for(identifier)

    def resolve_download(self, filename: str) -> Path | None:
        """Return the file path for a download name, or None when unusable."""
        if not filename or filename != Path(filename).name:
            return None
        candidate = (self.base_path / filename).resolve()
        if candidate.parent != self.base_path or not candidate.is_file():
            return None
        return candidate

    def list_files(self) -> list[Path]:
        return sorted(p for p in self.base_path.glob(f"*{DATASET_SUFFIX}") if p.is_file())

    @contextmanager
    def atomic_writer(self, target: Path) -> Iterator[IO[str]]:
        """Yield a text stream whose content replaces ``target`` only on success."""
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.stem}-", suffix=".tmp", dir=str(target.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as stream:
                yield stream
                stream.flush()
                os.fsync(stream.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


__all__ = ["DATASET_SUFFIX", "OutputDirectory", "slugify"]
