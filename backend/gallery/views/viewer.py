from drf_spectacular.utils import extend_schema
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from ..exceptions import Forbidden, NotFound
from ..serializers import ViewerAudioSerializer, ViewerOpenSerializer
from ..services.session import (
    GallerySession,
    discard_player,
    restore_player,
    store_player,
    viewer_is_owner,
)
from .base import GALLERY_UNAVAILABLE


class ViewerViewSet(viewsets.ViewSet):
    """
    浏览器：游标与语音讲解状态保存在 Django session 中，
    每个会话同时只打开一个画廊，且只对打开它的身份有效。
    """
    permission_classes = [permissions.AllowAny]

    def _render(self, request, player, session=None):
        store_player(request.session, player, session)
        data = player.snapshot()
        data["is_owner"] = session.is_owner if session is not None else viewer_is_owner(request.session)
        return Response(data)

    def _require_player(self, request):
        player = restore_player(request.session, viewer=request.user)
        if player is None:
            raise NotFound("尚未打开画廊")
        return player

    def list(self, request):
        """当前浏览状态"""
        return self._render(request, self._require_player(request))

    @extend_schema(request=ViewerOpenSerializer)
    @action(detail=False, methods=["post"])
    def open(self, request):
        """
        打开画廊：
        body {} → 当前用户的画廊（没有则创建）
        body {gallery_id} → 当前用户拥有的画廊
        body {slug} → 分享的画廊（只读）
        """
        serializer = ViewerOpenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        slug = serializer.validated_data.get("slug")

        discard_player(request.session)
        if slug:
            try:
                session = GallerySession.for_slug(slug, viewer=request.user)
            except (NotFound, Forbidden):
                return Response({"detail": GALLERY_UNAVAILABLE}, status=status.HTTP_404_NOT_FOUND)
        else:
            session = GallerySession.for_owner(request.user, serializer.validated_data.get("gallery_id"))

        return self._render(request, session.open_player(), session)

    @action(detail=False, methods=["post"])
    def next(self, request):
        player = self._require_player(request)
        player.next()
        return self._render(request, player)

    @action(detail=False, methods=["post"])
    def previous(self, request):
        player = self._require_player(request)
        player.previous()
        return self._render(request, player)

    @extend_schema(request=ViewerAudioSerializer)
    @action(detail=False, methods=["post"])
    def toggle_audio(self, request):
        """播放/暂停当前作品的语音讲解；暂停时可带上 offset（秒）"""
        serializer = ViewerAudioSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        player = self._require_player(request)
        player.toggle_audio(serializer.validated_data.get("offset"))
        return self._render(request, player)

    @extend_schema(request=ViewerAudioSerializer)
    @action(detail=False, methods=["post"])
    def audio_ended(self, request):
        serializer = ViewerAudioSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        player = self._require_player(request)
        player.audio_ended(serializer.validated_data.get("session_id"))
        return self._render(request, player)

    @action(detail=False, methods=["post"])
    def close(self, request):
        discard_player(request.session)
        return Response(status=status.HTTP_204_NO_CONTENT)
