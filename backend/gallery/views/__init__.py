"""聚合视图入口，便于路由导入。"""

from .base import GalleryViewSet, public_share_view
from .viewer import ViewerViewSet

__all__ = [
    "GalleryViewSet",
    "ViewerViewSet",
    "public_share_view",
]
