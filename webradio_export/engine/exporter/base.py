"""Exporter Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:  # pragma: no cover
    from ..artifact import ArtifactFile


class BaseExporter(ABC):
    """Uniform contract for every place an artifact file can be delivered to."""

    @abstractmethod
    def export(self, item: "ArtifactFile") -> str:
        """Persist a single artifact file and return where it landed."""

    def export_many(self, items: Iterable["ArtifactFile"]) -> list[str]:
        return [self.export(item) for item in items]

    @abstractmethod
    def flush(self) -> None:
        """Flush buffered data to destination."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


__all__ = ["BaseExporter"]
