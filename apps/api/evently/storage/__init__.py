from __future__ import annotations

from evently.storage.base import AssetStore, StoredAsset
from evently.storage.factory import create_asset_store
from evently.storage.local import LocalAssetStore

__all__ = ["AssetStore", "StoredAsset", "LocalAssetStore", "create_asset_store"]
