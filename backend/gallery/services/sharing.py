"""分享链接的签发与解析。"""

from __future__ import annotations

import logging
import secrets
import string
import time
from dataclasses import asdict, dataclass
from io import BytesIO
from typing import Any, Dict, Optional

import qrcode
from qrcode.image.pil import PilImage
from django.conf import settings

from ..exceptions import Forbidden, NotFound
from ..repository import GalleryRepository

logger = logging.getLogger(__name__)

SHARE_PATH = "/shared/{slug}"
SLUG_ALPHABET = string.ascii_lowercase + string.digits
SLUG_SUFFIX_LENGTH = 6


def generate_share_slug() -> str:
    """微秒时间戳 + 随机后缀；不与已有 slug 去重，碰撞概率忽略不计"""
    suffix = "".join(secrets.choice(SLUG_ALPHABET) for _ in range(SLUG_SUFFIX_LENGTH))
    return f"{time.time_ns() // 1000}-{suffix}"


def build_share_url(origin: str, slug: str) -> str:
    return origin.rstrip("/") + SHARE_PATH.format(slug=slug)


def render_share_qr(url: str) -> bytes:
    qr = qrcode.QRCode(version=1, box_size=10, border=4, image_factory=PilImage)
    qr.add_data(url)
    qr.make(fit=True)
    buffer = BytesIO()
    qr.make_image(fill_color="black", back_color="white").save(buffer, format="PNG")
    return buffer.getvalue()


@dataclass(frozen=True)
class ShareLink:
    gallery_id: int
    slug: str
    share_url: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ShareIssuer:
    def __init__(self, repository: Optional[GalleryRepository] = None, origin: Optional[str] = None) -> None:
        self.repository = repository or GalleryRepository()
        self.origin = getattr(settings, "SHARE_BASE_URL", None) or origin or ""

    def share_url(self, slug: str) -> str:
        return build_share_url(self.origin, slug)

    def issue_share_link(self, gallery_id: int) -> ShareLink:
        """签发新 slug 并公开画廊；旧链接随之失效。"""
        slug = generate_share_slug()
        self.repository.update_gallery(gallery_id, share_slug=slug, is_public=True)
        logger.info("分享链接已签发", extra={"gallery_id": gallery_id})
        return ShareLink(gallery_id=gallery_id, slug=slug, share_url=self.share_url(slug))

    def resolve_share_slug(self, slug: str) -> int:
        gallery = self.repository.find_gallery_by_slug(slug)
        if gallery is None:
            raise NotFound("分享链接无效")
        if not gallery.is_public:
            raise Forbidden("画廊未公开")
        return gallery.id
