"""上传编排：先写资源文件，再写作品记录。"""

from __future__ import annotations

import logging
from typing import List, Optional

from django.core.cache import cache

from ..exceptions import GalleryError, ValidationError
from ..models import Artwork
from ..repository import GalleryRepository
from ..utils_uploads import AUDIO_NAMESPACE, IMAGE_NAMESPACE, build_object_key, validate_upload_meta
from .storage import get_asset_store

logger = logging.getLogger(__name__)


def artworks_cache_key(gallery_id: int) -> str:
    return f"gallery_artworks_{gallery_id}"


def _validate_asset(namespace: str, asset) -> None:
    try:
        validate_upload_meta(namespace, getattr(asset, "content_type", ""), getattr(asset, "size", 0) or 0)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


class ArtworkUploadPipeline:
    """
    One call creates at most one Artwork. Blob writes that succeed before a
    later step fails are left in the store and only logged.
    """

    def __init__(self, repository: Optional[GalleryRepository] = None, asset_store=None) -> None:
        self.repository = repository or GalleryRepository()
        self._asset_store = asset_store

    @property
    def asset_store(self):
        if self._asset_store is None:
            self._asset_store = get_asset_store()
        return self._asset_store

    def next_position(self, gallery_id: int) -> int:
        last = self.repository.last_artwork_position(gallery_id)
        return 0 if last is None else last + 1

    def _store(self, namespace: str, owner_id: int, asset, written: List[str]) -> str:
        key = build_object_key(owner_id, getattr(asset, "name", ""), getattr(asset, "content_type", ""))
        url = self.asset_store.put(namespace, key, asset)
        written.append(f"{namespace}/{key}")
        return url

    def upload(
        self,
        gallery_id: int,
        owner_id: int,
        title: str,
        description: str = "",
        image=None,
        audio=None,
    ) -> Artwork:
        title = (title or "").strip()
        if not title:
            raise ValidationError("请填写作品标题")
        if image is None:
            raise ValidationError("请选择作品图片")
        _validate_asset(IMAGE_NAMESPACE, image)
        if audio is not None:
            _validate_asset(AUDIO_NAMESPACE, audio)

        gallery = self.repository.require_owned_gallery(gallery_id, owner_id)

        written: List[str] = []
        try:
            image_url = self._store(IMAGE_NAMESPACE, owner_id, image, written)
            audio_url = self._store(AUDIO_NAMESPACE, owner_id, audio, written) if audio is not None else None
            artwork = self.repository.insert_artwork(
                gallery_id=gallery.id,
                owner_id=owner_id,
                title=title,
                description=description or "",
                image_url=image_url,
                audio_url=audio_url,
                position=self.next_position(gallery.id),
            )
        except GalleryError:
            if written:
                logger.warning("上传中断，遗留资源未清理", extra={"gallery_id": gallery.id, "orphans": written})
            raise

        cache.delete(artworks_cache_key(gallery.id))
        logger.info(
            "作品已上传",
            extra={"gallery_id": gallery.id, "artwork_id": artwork.id, "position": artwork.position},
        )
        return artwork
