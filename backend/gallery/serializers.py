from rest_framework import serializers
from .models import Artwork, Gallery
from .repository import GalleryRepository


class GallerySerializer(serializers.ModelSerializer):
    artwork_count = serializers.SerializerMethodField()

    class Meta:
        model = Gallery
        fields = ["id", "title", "description", "artwork_count", "is_public", "created_at"]
        read_only_fields = ["is_public", "created_at"]

    def get_artwork_count(self, obj):
        count = getattr(obj, "artwork_count", None)
        if count is None:
            count = GalleryRepository().count_artworks(obj.id)
        return count


class ArtworkSerializer(serializers.ModelSerializer):
    class Meta:
        model = Artwork
        fields = ["id", "gallery", "title", "description", "image_url", "audio_url", "position", "created_at"]
        read_only_fields = fields


class ArtworkUploadSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200, allow_blank=True, required=False, default="")
    description = serializers.CharField(allow_blank=True, required=False, default="")
    image = serializers.FileField(required=False, allow_null=True)
    audio = serializers.FileField(required=False, allow_null=True)


class SharedGallerySerializer(serializers.ModelSerializer):
    artworks = serializers.SerializerMethodField()

    class Meta:
        model = Gallery
        fields = ["id", "title", "description", "artworks"]

    def get_artworks(self, obj):
        artworks = self.context.get("artworks")
        if artworks is None:
            artworks = obj.artworks.order_by("position", "id")
        return ArtworkSerializer(artworks, many=True).data


class ViewerOpenSerializer(serializers.Serializer):
    gallery_id = serializers.IntegerField(required=False, min_value=1)
    slug = serializers.CharField(required=False, max_length=64)


class ViewerAudioSerializer(serializers.Serializer):
    offset = serializers.FloatField(required=False, min_value=0)
    session_id = serializers.IntegerField(required=False, min_value=1)
