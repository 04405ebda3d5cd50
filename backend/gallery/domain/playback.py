"""浏览与语音讲解状态机。

GalleryPlayer 持有按 position 排好的作品序列、游标，以及至多一个音频会话。
它只维护状态，真正的播放由客户端按快照中的 session_id / state 执行：
session_id 变化表示需要从头加载新音频，不变则在原位置继续或暂停。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional


class ViewerState(str, Enum):
    EMPTY = "empty"
    BROWSING = "browsing"


class AudioState(str, Enum):
    NONE = "none"
    PAUSED = "loaded-paused"
    PLAYING = "playing"


@dataclass(frozen=True)
class ArtworkFrame:
    id: int
    title: str
    description: str
    image_url: str
    audio_url: Optional[str]
    position: int

    @classmethod
    def from_artwork(cls, artwork) -> "ArtworkFrame":
        return cls(
            id=artwork.id,
            title=artwork.title,
            description=artwork.description or "",
            image_url=artwork.image_url,
            audio_url=artwork.audio_url or None,
            position=artwork.position,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AudioSessionReleased(RuntimeError):
    """已释放的会话不能再播放。"""


class AudioSession:
    """单个音频句柄：loaded-paused <-> playing，release 之后即作废。"""

    def __init__(self, session_id: int, source: str, offset: float = 0.0, state: AudioState = AudioState.PAUSED):
        self.session_id = session_id
        self.source = source
        self.offset = offset
        self.state = state

    @property
    def playing(self) -> bool:
        return self.state is AudioState.PLAYING

    @property
    def released(self) -> bool:
        return self.state is AudioState.NONE

    def play(self) -> None:
        if self.released:
            raise AudioSessionReleased(f"audio session {self.session_id} already released")
        self.state = AudioState.PLAYING

    def pause(self, offset: Optional[float] = None) -> None:
        if self.released:
            return
        if offset is not None:
            self.offset = max(0.0, float(offset))
        self.state = AudioState.PAUSED

    def finish(self) -> None:
        # 播放结束后再次播放从头开始
        if self.released:
            return
        self.offset = 0.0
        self.state = AudioState.PAUSED

    def release(self) -> None:
        self.state = AudioState.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "source": self.source,
            "offset": self.offset,
            "state": self.state.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AudioSession":
        return cls(
            session_id=int(data["session_id"]),
            source=data["source"],
            offset=float(data.get("offset") or 0.0),
            state=AudioState(data.get("state", AudioState.PAUSED.value)),
        )


ArtworkLoader = Callable[[int], Iterable[Any]]


class GalleryPlayer:
    def __init__(self, loader: Optional[ArtworkLoader] = None) -> None:
        self.loader = loader
        self.gallery_id: Optional[int] = None
        self.sequence: List[ArtworkFrame] = []
        self.cursor = 0
        self._session: Optional[AudioSession] = None
        self._last_session_id = 0

    # ---------- 状态 ----------

    @property
    def state(self) -> ViewerState:
        return ViewerState.BROWSING if self.sequence else ViewerState.EMPTY

    @property
    def current(self) -> Optional[ArtworkFrame]:
        if not self.sequence:
            return None
        return self.sequence[self.cursor]

    @property
    def session(self) -> Optional[AudioSession]:
        return self._session

    @property
    def audio_state(self) -> AudioState:
        return self._session.state if self._session is not None else AudioState.NONE

    @property
    def audio_playing(self) -> bool:
        return self._session is not None and self._session.playing

    @property
    def total(self) -> int:
        return len(self.sequence)

    @property
    def display_position(self) -> int:
        return self.cursor + 1 if self.sequence else 0

    @property
    def has_next(self) -> bool:
        return self.cursor < len(self.sequence) - 1

    @property
    def has_previous(self) -> bool:
        return self.cursor > 0

    # ---------- 迁移 ----------

    def load_sequence(self, gallery_id: int, artworks: Optional[Iterable[Any]] = None) -> ViewerState:
        if artworks is None:
            if self.loader is None:
                raise RuntimeError("GalleryPlayer has no artwork loader")
            artworks = self.loader(gallery_id)
        self.release_audio()
        self.gallery_id = gallery_id
        frames = [item if isinstance(item, ArtworkFrame) else ArtworkFrame.from_artwork(item) for item in artworks]
        self.sequence = sorted(frames, key=lambda frame: frame.position)
        self.cursor = 0
        return self.state

    def next(self) -> bool:
        if not self.has_next:
            return False
        self.release_audio()
        self.cursor += 1
        return True

    def previous(self) -> bool:
        if not self.has_previous:
            return False
        self.release_audio()
        self.cursor -= 1
        return True

    def toggle_audio(self, offset: Optional[float] = None) -> AudioState:
        artwork = self.current
        if artwork is None or not artwork.audio_url:
            return self.audio_state

        if self._session is not None and self._session.playing:
            self._session.pause(offset)
            return self._session.state

        if self._session is None or self._session.source != artwork.audio_url:
            self._open_session(artwork.audio_url)
        self._session.play()
        return self._session.state

    def audio_ended(self, session_id: Optional[int] = None) -> AudioState:
        """客户端报告播放自然结束；过期的 session_id 被忽略，游标不动。"""
        if self._session is None:
            return AudioState.NONE
        if session_id is not None and session_id != self._session.session_id:
            return self._session.state
        self._session.finish()
        return self._session.state

    def release_audio(self) -> None:
        if self._session is not None:
            self._session.release()
            self._session = None

    def close(self) -> None:
        self.release_audio()

    def _open_session(self, source: str) -> None:
        self.release_audio()
        self._last_session_id += 1
        self._session = AudioSession(self._last_session_id, source)

    # ---------- 序列化 ----------

    def snapshot(self) -> Dict[str, Any]:
        current = self.current
        return {
            "gallery_id": self.gallery_id,
            "state": self.state.value,
            "position": self.display_position,
            "total": self.total,
            "has_next": self.has_next,
            "has_previous": self.has_previous,
            "artwork": current.to_dict() if current is not None else None,
            "audio": self._session.to_dict() if self._session is not None else None,
        }

    def to_state(self) -> Dict[str, Any]:
        return {
            "gallery_id": self.gallery_id,
            "sequence": [frame.to_dict() for frame in self.sequence],
            "cursor": self.cursor,
            "session": self._session.to_dict() if self._session is not None else None,
            "last_session_id": self._last_session_id,
        }

    @classmethod
    def from_state(cls, data: Dict[str, Any], loader: Optional[ArtworkLoader] = None) -> "GalleryPlayer":
        player = cls(loader=loader)
        player.gallery_id = data.get("gallery_id")
        player.sequence = [ArtworkFrame(**item) for item in data.get("sequence") or []]
        cursor = int(data.get("cursor") or 0)
        player.cursor = min(max(cursor, 0), max(len(player.sequence) - 1, 0))
        player._last_session_id = int(data.get("last_session_id") or 0)
        session = data.get("session")
        if session:
            player._session = AudioSession.from_dict(session)
        return player
