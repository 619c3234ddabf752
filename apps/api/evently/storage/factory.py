from __future__ import annotations

from pathlib import Path

from evently.core.config import Settings, settings as default_settings
from evently.storage.base import AssetStore
from evently.storage.local import LocalAssetStore


def create_asset_store(config: Settings | None = None) -> AssetStore:
    config = config or default_settings
    selected_backend = config.storage_backend.strip().lower()
    if selected_backend == "local":
        return LocalAssetStore(
            Path(config.storage_root),
            public_base_url=config.storage_public_base_url,
        )
    raise ValueError(f"unsupported storage backend: {selected_backend}")
