"""Write artifact files into the local output directory."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .base import BaseExporter

if TYPE_CHECKING:  # pragma: no cover
    from ..artifact import ArtifactFile


class FileExporter(BaseExporter):
    """Persist artifact files as JSON documents under ``output_dir``.

    Files are overwritten in place on every run, so a document left
    half-written by a crash is replaced by the next delivery.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.written: list[Path] = []

    def path_for(self, file_name: str) -> Path:
        return self.output_dir / file_name

    def export(self, item: "ArtifactFile") -> str:
        path = self.path_for(item.file_name)
        with path.open("w", encoding="utf-8", newline="\n") as stream:
            stream.write(item.render())
        self.written.append(path)
        return str(path)

    def flush(self) -> None:
        return

    def close(self) -> None:
        self.written.clear()


__all__ = ["FileExporter"]
