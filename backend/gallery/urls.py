from django.urls import path
from rest_framework.routers import DefaultRouter

from .views import GalleryViewSet, ViewerViewSet, public_share_view

router = DefaultRouter()
router.register("galleries", GalleryViewSet, basename="gallery")
router.register("viewer", ViewerViewSet, basename="viewer")

urlpatterns = router.urls + [
    path("shared/<str:slug>/", public_share_view),
]
