from __future__ import annotations

from typing import List, Optional

from django.contrib.auth.models import User
from django.db import DatabaseError, transaction
from django.db.models import Count

from .exceptions import NotFound, RecordWriteFailed
from .models import Artwork, Gallery


class GalleryRepository:
    """
    Data access layer for Gallery and Artwork records.
    All direct database interactions for the gallery app go through this class.
    """

    # ---------- Gallery ----------

    def find_gallery(self, gallery_id: int) -> Optional[Gallery]:
        return Gallery.objects.filter(id=gallery_id).first()

    def find_galleries_by_owner(self, owner_id: int) -> List[Gallery]:
        """按创建时间从早到晚，第一个即默认画廊。"""
        return list(Gallery.objects.filter(owner_id=owner_id).order_by("created_at", "id"))

    def galleries_with_counts(self, owner_id: int):
        return (
            Gallery.objects.filter(owner_id=owner_id)
            .annotate(artwork_count=Count("artworks"))
            .order_by("-created_at", "-id")
        )

    def find_gallery_by_slug(self, slug: str) -> Optional[Gallery]:
        if not slug:
            return None
        return Gallery.objects.filter(share_slug=slug).first()

    def require_owned_gallery(self, gallery_id: int, owner_id: int) -> Gallery:
        """
        Row-level ownership check. A gallery owned by someone else is reported
        exactly like a missing one.
        """
        gallery = Gallery.objects.filter(id=gallery_id, owner_id=owner_id).first()
        if gallery is None:
            raise NotFound()
        return gallery

    def insert_gallery(self, *, owner_id: int, title: str, description: str = "") -> Gallery:
        try:
            return Gallery.objects.create(owner_id=owner_id, title=title, description=description)
        except DatabaseError as exc:
            raise RecordWriteFailed("创建画廊失败") from exc

    def first_or_create_gallery(self, *, owner_id: int, title: str, description: str = "") -> Gallery:
        """
        Returns the owner's first gallery, creating it when none exists.
        The owner row is locked for the duration so two first logins cannot
        both create one.
        """
        try:
            with transaction.atomic():
                User.objects.select_for_update().filter(id=owner_id).first()
                existing = self.find_galleries_by_owner(owner_id)
                if existing:
                    return existing[0]
                return Gallery.objects.create(owner_id=owner_id, title=title, description=description)
        except DatabaseError as exc:
            raise RecordWriteFailed("创建画廊失败") from exc

    def update_gallery(self, gallery_id: int, **fields) -> None:
        try:
            updated = Gallery.objects.filter(id=gallery_id).update(**fields)
        except DatabaseError as exc:
            raise RecordWriteFailed("更新画廊失败") from exc
        if not updated:
            raise NotFound()

    # ---------- Artwork ----------

    def list_artworks(self, gallery_id: int) -> List[Artwork]:
        return list(Artwork.objects.filter(gallery_id=gallery_id).order_by("position", "id"))

    def count_artworks(self, gallery_id: int) -> int:
        return Artwork.objects.filter(gallery_id=gallery_id).count()

    def last_artwork_position(self, gallery_id: int) -> Optional[int]:
        return (
            Artwork.objects.filter(gallery_id=gallery_id)
            .order_by("-position")
            .values_list("position", flat=True)
            .first()
        )

    def insert_artwork(
        self,
        *,
        gallery_id: int,
        owner_id: int,
        title: str,
        description: str,
        image_url: str,
        audio_url: Optional[str],
        position: int,
    ) -> Artwork:
        try:
            with transaction.atomic():
                return Artwork.objects.create(
                    gallery_id=gallery_id,
                    owner_id=owner_id,
                    title=title,
                    description=description,
                    image_url=image_url,
                    audio_url=audio_url,
                    position=position,
                )
        except DatabaseError as exc:
            raise RecordWriteFailed("保存作品失败") from exc
