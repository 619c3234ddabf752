from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class StoredAsset:
    url: str
    asset_id: str


class AssetStore(ABC):
    @abstractmethod
    def store(self, content: bytes, content_type: str | None = None) -> StoredAsset:
        """Persist content durably and return its public URL and deletion handle."""

    @abstractmethod
    def delete(self, asset_id: str) -> bool:
        """Delete an asset. Returns False on failure instead of raising."""
