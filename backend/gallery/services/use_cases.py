"""Domain use-case objects built on top of gallery services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

from ..exceptions import Unauthenticated
from ..models import Artwork, Gallery
from ..repository import GalleryRepository
from .sharing import ShareIssuer, ShareLink
from .uploads import ArtworkUploadPipeline

DEFAULT_GALLERY_DESCRIPTION = "Welcome to my personal gallery"


def display_name(user) -> str:
    name = user.get_full_name().strip() if hasattr(user, "get_full_name") else ""
    return name or user.get_username() or "My"


def default_gallery_title(user) -> str:
    return f"{display_name(user)}'s Gallery"


@dataclass
class GalleryOwnerContext:
    user: Any

    def require_user(self):
        if self.user is None or not getattr(self.user, "is_authenticated", False):
            raise Unauthenticated()
        return self.user


class GalleryUseCase:
    """Coordinate gallery-level operations for the current owner."""

    def __init__(
        self,
        user,
        repository: Optional[GalleryRepository] = None,
        pipeline: Optional[ArtworkUploadPipeline] = None,
        issuer: Optional[ShareIssuer] = None,
    ):
        self.context = GalleryOwnerContext(user=user)
        self.repository = repository or GalleryRepository()
        self._pipeline = pipeline
        self._issuer = issuer

    @property
    def user(self):
        return self.context.require_user()

    @property
    def pipeline(self) -> ArtworkUploadPipeline:
        if self._pipeline is None:
            self._pipeline = ArtworkUploadPipeline(repository=self.repository)
        return self._pipeline

    def issuer(self, origin: Optional[str] = None) -> ShareIssuer:
        if self._issuer is None:
            self._issuer = ShareIssuer(repository=self.repository, origin=origin)
        return self._issuer

    def galleries(self):
        return self.repository.galleries_with_counts(self.user.id)

    def create_gallery(self, serializer) -> Gallery:
        gallery = self.repository.insert_gallery(
            owner_id=self.user.id,
            title=serializer.validated_data["title"],
            description=serializer.validated_data.get("description", ""),
        )
        serializer.instance = gallery
        return gallery

    def get_gallery(self, gallery_id: int) -> Gallery:
        return self.repository.require_owned_gallery(gallery_id, self.user.id)

    def resolve_gallery(self) -> Gallery:
        """取所有者的第一个画廊，没有则自动创建一个。"""
        user = self.user
        existing = self.repository.find_galleries_by_owner(user.id)
        if existing:
            return existing[0]
        return self.repository.first_or_create_gallery(
            owner_id=user.id,
            title=default_gallery_title(user),
            description=DEFAULT_GALLERY_DESCRIPTION,
        )

    def list_artworks(self, gallery: Gallery) -> List[Artwork]:
        return self.repository.list_artworks(gallery.id)

    def upload_artwork(self, gallery_id: int, title: str, description: str, image, audio=None) -> Artwork:
        return self.pipeline.upload(gallery_id, self.user.id, title, description, image, audio)

    def issue_share_link(self, gallery_id: int, origin: Optional[str] = None) -> ShareLink:
        gallery = self.get_gallery(gallery_id)
        return self.issuer(origin).issue_share_link(gallery.id)

    def current_share_url(self, gallery_id: int, origin: Optional[str] = None) -> Optional[str]:
        gallery = self.get_gallery(gallery_id)
        if not gallery.share_slug or not gallery.is_public:
            return None
        return self.issuer(origin).share_url(gallery.share_slug)
