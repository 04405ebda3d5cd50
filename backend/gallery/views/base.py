from django.conf import settings
from django.core.cache import cache
from django.http import HttpResponse
from drf_spectacular.utils import extend_schema
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from ..exceptions import Forbidden, NotFound
from ..repository import GalleryRepository
from ..serializers import (
    ArtworkSerializer,
    ArtworkUploadSerializer,
    GallerySerializer,
    SharedGallerySerializer,
)
from ..services import StorageBackendNotConfigured
from ..services.session import GallerySession
from ..services.sharing import render_share_qr
from ..services.uploads import artworks_cache_key
from ..services.use_cases import GalleryUseCase

GALLERY_UNAVAILABLE = "画廊不可用"


def request_origin(request) -> str:
    return request.build_absolute_uri("/")


class GalleryViewSet(
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """画廊管理（仅所有者）"""
    serializer_class = GallerySerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_use_case(self) -> GalleryUseCase:
        if not hasattr(self, "_gallery_use_case"):
            self._gallery_use_case = GalleryUseCase(self.request.user)
        return self._gallery_use_case

    def get_queryset(self):
        return self.get_use_case().galleries()

    def perform_create(self, serializer):
        self.get_use_case().create_gallery(serializer)

    @action(detail=False, methods=["get"])
    def mine(self, request):
        """获取当前用户的画廊，没有则自动创建"""
        gallery = self.get_use_case().resolve_gallery()
        data = GallerySerializer(gallery).data
        data["is_owner"] = True
        return Response(data)

    @action(detail=True, methods=["get"])
    def artworks(self, request, pk=None):
        """按 position 升序返回画廊内的作品"""
        gallery = self.get_use_case().get_gallery(int(pk))
        cache_key = artworks_cache_key(gallery.id)
        cached_data = cache.get(cache_key)
        if cached_data is not None:
            return Response(cached_data)
        artworks = self.get_use_case().list_artworks(gallery)
        data = ArtworkSerializer(artworks, many=True).data
        cache.set(cache_key, data, getattr(settings, "CACHE_TTL", 60))
        return Response(data)

    @extend_schema(summary="上传作品", request=ArtworkUploadSerializer, responses={201: ArtworkSerializer})
    @action(detail=True, methods=["post"], parser_classes=[MultiPartParser, FormParser])
    def upload(self, request, pk=None):
        """上传一幅作品：图片必填，语音讲解可选"""
        serializer = ArtworkUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            artwork = self.get_use_case().upload_artwork(
                int(pk),
                serializer.validated_data.get("title", ""),
                serializer.validated_data.get("description", ""),
                serializer.validated_data.get("image"),
                serializer.validated_data.get("audio"),
            )
        except StorageBackendNotConfigured as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(ArtworkSerializer(artwork).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], parser_classes=[JSONParser, FormParser])
    def share(self, request, pk=None):
        """签发分享链接（重新签发会使旧链接失效）"""
        link = self.get_use_case().issue_share_link(int(pk), origin=request_origin(request))
        return Response(link.to_dict())

    @action(detail=True, methods=["get"])
    def share_qr(self, request, pk=None):
        """当前分享链接的二维码 PNG"""
        url = self.get_use_case().current_share_url(int(pk), origin=request_origin(request))
        if url is None:
            return Response({"detail": "画廊尚未分享"}, status=status.HTTP_404_NOT_FOUND)
        return HttpResponse(render_share_qr(url), content_type="image/png")


@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def public_share_view(request, slug):
    """通过分享链接访问画廊（只读）"""
    try:
        session = GallerySession.for_slug(slug, viewer=request.user)
    except (NotFound, Forbidden):
        # 不区分不存在与未公开，避免泄露私有画廊
        return Response({"detail": GALLERY_UNAVAILABLE}, status=status.HTTP_404_NOT_FOUND)
    artworks = GalleryRepository().list_artworks(session.gallery_id)
    data = SharedGallerySerializer(session.gallery, context={"artworks": artworks}).data
    data["is_owner"] = session.is_owner
    return Response(data)
