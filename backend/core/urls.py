from django.conf import settings
from django.conf.urls.static import static
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView

from gallery.views import public_share_view

urlpatterns = [
    path('api/', include('users.urls')),
    path('api/gallery/', include('gallery.urls')),
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    # 分享链接 {origin}/shared/{slug}：未配置 SHARE_BASE_URL 时由本服务直接应答
    path('shared/<str:slug>', public_share_view, name='shared-gallery'),
]

# 本地存储时由 Django 提供作品文件
if settings.DEBUG and settings.STORAGE_BACKEND == 'local':
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
