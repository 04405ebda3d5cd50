"""画廊会话：把登录身份或分享 slug 解析为唯一的目标画廊，并装配浏览器状态机。"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from django.conf import settings

from ..domain import GalleryPlayer
from ..exceptions import Forbidden, NotFound
from ..models import Gallery
from ..repository import GalleryRepository
from .sharing import ShareIssuer
from .use_cases import GalleryUseCase

logger = logging.getLogger(__name__)

VIEWER_SESSION_KEY = "gallery_viewer"


def viewer_id(user) -> Optional[int]:
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return user.id


@dataclass
class GallerySession:
    gallery: Gallery
    viewer: Any = None
    slug: Optional[str] = None
    repository: GalleryRepository = field(default_factory=GalleryRepository)

    @classmethod
    def for_owner(cls, user, gallery_id: Optional[int] = None, repository: Optional[GalleryRepository] = None):
        repository = repository or GalleryRepository()
        use_case = GalleryUseCase(user, repository=repository)
        if gallery_id is None:
            gallery = use_case.resolve_gallery()
        else:
            gallery = use_case.get_gallery(gallery_id)
        return cls(gallery=gallery, viewer=user, repository=repository)

    @classmethod
    def for_slug(cls, slug: str, viewer=None, repository: Optional[GalleryRepository] = None):
        repository = repository or GalleryRepository()
        gallery_id = ShareIssuer(repository=repository).resolve_share_slug(slug)
        return cls(gallery=repository.find_gallery(gallery_id), viewer=viewer, slug=slug, repository=repository)

    @property
    def gallery_id(self) -> int:
        return self.gallery.id

    @property
    def is_owner(self) -> bool:
        """仅供展示层决定是否显示上传/分享入口，不是授权边界。"""
        return viewer_id(self.viewer) == self.gallery.owner_id

    def open_player(self) -> GalleryPlayer:
        player = GalleryPlayer(loader=self.repository.list_artworks)
        player.load_sequence(self.gallery_id)
        return player


# ---------- 浏览器状态持久化（Django session） ----------
#
# 保存的状态绑定到打开它的身份（匿名为 None）；身份变化后状态作废。
# 通过分享链接打开的画廊每次恢复都重新解析 slug，取消公开或重新签发后即不可再读。


def _session_key() -> str:
    return getattr(settings, "GALLERY_VIEWER_SESSION_KEY", VIEWER_SESSION_KEY)


def _load(data: Dict[str, Any]) -> GalleryPlayer:
    return GalleryPlayer.from_state(data["player"], loader=GalleryRepository().list_artworks)


def _still_shared(data: Dict[str, Any]) -> bool:
    slug = data.get("slug")
    if not slug:
        return True
    try:
        gallery_id = ShareIssuer().resolve_share_slug(slug)
    except (NotFound, Forbidden):
        return False
    return gallery_id == data["player"].get("gallery_id")


def restore_player(django_session, viewer=None) -> Optional[GalleryPlayer]:
    data: Optional[Dict[str, Any]] = django_session.get(_session_key())
    if not data:
        return None
    if data.get("viewer_id") != viewer_id(viewer) or not _still_shared(data):
        logger.info("浏览状态已失效", extra={"gallery_id": data["player"].get("gallery_id")})
        discard_player(django_session)
        return None
    return _load(data)


def viewer_is_owner(django_session) -> bool:
    data = django_session.get(_session_key()) or {}
    return bool(data.get("is_owner"))


def store_player(django_session, player: GalleryPlayer, session: Optional[GallerySession] = None) -> None:
    """session 只在打开画廊时传入；之后的导航只更新游标与音频状态。"""
    key = _session_key()
    if session is not None:
        data = {
            "viewer_id": viewer_id(session.viewer),
            "slug": session.slug,
            "is_owner": session.is_owner,
        }
    else:
        data = dict(django_session.get(key) or {})
    data["player"] = player.to_state()
    django_session[key] = data


def discard_player(django_session) -> Optional[GalleryPlayer]:
    """拆除浏览器：释放音频会话并清除保存的状态。"""
    data = django_session.pop(_session_key(), None)
    if not data:
        return None
    player = _load(data)
    player.close()
    return player
