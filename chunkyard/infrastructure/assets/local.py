"""
Directory-backed asset store.

Stands in for the external system of record: each finished upload is
written once under ``<directory>/<asset_id>/`` and described by an
AssetDescriptor carrying its SHA-256 checksum.
"""

import hashlib
import uuid
from datetime import datetime, timezone
from pathlib import Path

import aiofiles
import aiofiles.os
from loguru import logger

from ...core.domain.sessions import AssetDescriptor, AssetUpload
from ...core.interfaces.upload import IAssetStore


def _safe_file_name(file_name: str) -> str:
    name = Path(file_name.replace("\\", "/")).name
    return name or "upload.bin"


class LocalAssetStore(IAssetStore):
    """Write assembled payloads to a local directory."""

    def __init__(self, directory: str) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    async def upload(self, asset: AssetUpload) -> AssetDescriptor:
        if len(asset.data) != asset.size:
            raise ValueError(
                f"Payload length {len(asset.data)} does not match declared size {asset.size}")

        asset_id = uuid.uuid4().hex
        asset_dir = self._directory / asset_id
        await aiofiles.os.makedirs(asset_dir, exist_ok=True)

        location = asset_dir / _safe_file_name(asset.file_name)
        async with aiofiles.open(location, 'wb') as f:
            await f.write(asset.data)

        checksum = hashlib.sha256(asset.data).hexdigest()
        logger.info(f"Stored asset {asset_id} ({asset.size} bytes, sha256={checksum[:12]}...)")

        return AssetDescriptor(
            asset_id=asset_id,
            file_name=asset.file_name,
            content_type=asset.content_type,
            size=asset.size,
            checksum=checksum,
            location=str(location),
            created_at=datetime.now(timezone.utc),
            metadata={
                "owner_studio_id": asset.owner_studio_id,
                "uploader_identity": asset.uploader_identity,
                "description": asset.description,
            },
        )
