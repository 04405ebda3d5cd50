"""Gallery domain service layer.

This package contains reusable service helpers that encapsulate integrations
and orchestration logic shared across views and the viewer session.
"""

from .storage import LocalAssetStore, S3AssetStore, StorageBackendNotConfigured, get_asset_store
from .sharing import ShareIssuer, ShareLink
from .uploads import ArtworkUploadPipeline
from .use_cases import GalleryUseCase
from .session import GallerySession

__all__ = [
    "get_asset_store",
    "LocalAssetStore",
    "S3AssetStore",
    "StorageBackendNotConfigured",
    "ShareIssuer",
    "ShareLink",
    "ArtworkUploadPipeline",
    "GalleryUseCase",
    "GallerySession",
]
