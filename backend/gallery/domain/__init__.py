"""领域层：与 Django 无关的浏览/播放状态机。"""

from .playback import (
    ArtworkFrame,
    AudioSession,
    AudioSessionReleased,
    AudioState,
    GalleryPlayer,
    ViewerState,
)

__all__ = [
    "ArtworkFrame",
    "AudioSession",
    "AudioSessionReleased",
    "AudioState",
    "GalleryPlayer",
    "ViewerState",
]
