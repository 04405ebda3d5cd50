from django.db import models
from django.contrib.auth.models import User


class Gallery(models.Model):
    """画廊：所有者的一组有序作品"""

    class Meta:
        indexes = [
            models.Index(fields=["owner", "created_at"], name="gallery_owner_created_idx"),
        ]

    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="galleries")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    # 分享状态，只由 ShareIssuer 修改
    share_slug = models.CharField(max_length=64, unique=True, null=True, blank=True)
    is_public = models.BooleanField(default=False)

    def __str__(self):
        return self.title


class Artwork(models.Model):
    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["gallery", "position"], name="unique_artwork_position"),
        ]

    gallery = models.ForeignKey(Gallery, on_delete=models.CASCADE, related_name="artworks")
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="artworks")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")

    # 资源存储返回的公开地址
    image_url = models.CharField(max_length=1024)
    audio_url = models.CharField(max_length=1024, null=True, blank=True)

    position = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.title
