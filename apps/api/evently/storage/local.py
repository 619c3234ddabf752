from __future__ import annotations

import mimetypes
import uuid
from pathlib import Path, PurePosixPath

import structlog

from evently.storage.base import AssetStore, StoredAsset

logger = structlog.get_logger(__name__)

DEFAULT_FOLDER = "event-platform"


class LocalAssetStore(AssetStore):
    def __init__(self, root: Path, public_base_url: str = "/assets", folder: str = DEFAULT_FOLDER) -> None:
        self._root = root.resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._public_base_url = public_base_url.rstrip("/")
        self._folder = folder

    def _normalize_key(self, key: str) -> str:
        normalized = key.strip().lstrip("/")
        path_key = PurePosixPath(normalized)
        if not normalized or path_key.is_absolute() or ".." in path_key.parts:
            raise ValueError(f"invalid asset id: {key!r}")
        return str(path_key)

    def _path_for_key(self, key: str) -> Path:
        normalized = self._normalize_key(key)
        return self._root.joinpath(*PurePosixPath(normalized).parts)

    def _new_key(self, content_type: str | None) -> str:
        suffix = ""
        if content_type:
            suffix = mimetypes.guess_extension(content_type.split(";")[0].strip()) or ""
        return f"{self._folder}/{uuid.uuid4().hex}{suffix}"

    def store(self, content: bytes, content_type: str | None = None) -> StoredAsset:
        key = self._new_key(content_type)
        path = self._path_for_key(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.part")
        with tmp_path.open("wb") as out:
            out.write(content)
        tmp_path.replace(path)
        logger.info("asset_stored", asset_id=key, size=len(content))
        return StoredAsset(url=self.resolve_url(key), asset_id=key)

    def delete(self, asset_id: str) -> bool:
        try:
            path = self._path_for_key(asset_id)
            path.unlink(missing_ok=True)
        except (OSError, ValueError) as exc:
            logger.warning("asset_delete_failed", asset_id=asset_id, error=str(exc))
            return False
        return True

    def exists(self, asset_id: str) -> bool:
        return self._path_for_key(asset_id).exists()

    def resolve_url(self, asset_id: str) -> str:
        return f"{self._public_base_url}/{self._normalize_key(asset_id)}"
