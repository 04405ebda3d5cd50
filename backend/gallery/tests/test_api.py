from __future__ import annotations

import shutil
import tempfile
from unittest.mock import patch

from django.contrib.auth.models import User
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from ..exceptions import RecordWriteFailed
from ..models import Artwork, Gallery
from ..repository import GalleryRepository

GALLERIES = "/api/gallery/galleries/"
VIEWER = "/api/gallery/viewer/"


class GalleryApiTestCase(APITestCase):
    def setUp(self) -> None:
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        override = override_settings(
            MEDIA_ROOT=media_root,
            MEDIA_URL="/media/",
            STORAGE_BACKEND="local",
            SHARE_BASE_URL=None,
            ASSET_PUBLIC_BASE_URL=None,
        )
        override.enable()
        self.addCleanup(override.disable)
        cache.clear()

        self.user = User.objects.create_user(username="alice", password="pass")
        self.client.force_authenticate(user=self.user)

    def _gallery(self, owner=None, **fields) -> Gallery:
        fields.setdefault("title", "Gallery")
        return Gallery.objects.create(owner=owner or self.user, **fields)

    def _artwork(self, gallery, position, audio_url=None) -> Artwork:
        return Artwork.objects.create(
            gallery=gallery,
            owner=gallery.owner,
            title=f"Artwork {position}",
            image_url=f"/media/images/{position}.png",
            audio_url=audio_url,
            position=position,
        )

    def _upload(self, gallery, title="Dawn", audio=False):
        payload = {
            "title": title,
            "description": "first light",
            "image": SimpleUploadedFile("dawn.png", b"png-bytes", content_type="image/png"),
        }
        if audio:
            payload["audio"] = SimpleUploadedFile("dawn.mp3", b"mp3-bytes", content_type="audio/mpeg")
        return self.client.post(f"{GALLERIES}{gallery.id}/upload/", payload, format="multipart")


class GalleryOwnerApiTests(GalleryApiTestCase):
    def test_mine_creates_once(self):
        first = self.client.get(f"{GALLERIES}mine/")
        second = self.client.get(f"{GALLERIES}mine/")

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first.data["id"], second.data["id"])
        self.assertEqual(first.data["title"], "alice's Gallery")
        self.assertTrue(first.data["is_owner"])
        self.assertEqual(Gallery.objects.filter(owner=self.user).count(), 1)

    def test_mine_requires_login(self):
        self.client.force_authenticate(user=None)

        response = self.client.get(f"{GALLERIES}mine/")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_galleries_with_counts(self):
        gallery = self._gallery(title="Mine")
        self._artwork(gallery, 0)
        self._artwork(gallery, 1)
        self._gallery(owner=User.objects.create_user(username="bob", password="pass"))

        response = self.client.get(GALLERIES)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["artwork_count"], 2)

    def test_create_gallery(self):
        response = self.client.post(GALLERIES, {"title": "Second", "description": "more"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Gallery.objects.get(id=response.data["id"]).owner, self.user)
        self.assertFalse(response.data["is_public"])
        self.assertEqual(response.data["artwork_count"], 0)

    def test_create_gallery_failure_is_reported(self):
        with patch.object(GalleryRepository, "insert_gallery", side_effect=RecordWriteFailed("创建画廊失败")):
            response = self.client.post(GALLERIES, {"title": "Second"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {"detail": "创建画廊失败"})
        self.assertFalse(Gallery.objects.exists())

    @override_settings(STORAGE_BACKEND="s3", ARTWORK_IMAGE_BUCKET="", ARTWORK_AUDIO_BUCKET="")
    def test_upload_with_unconfigured_storage(self):
        gallery = self._gallery()

        response = self._upload(gallery)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("bucket", response.data["detail"])
        self.assertFalse(Artwork.objects.exists())

    def test_upload_assigns_positions(self):
        gallery = self._gallery()

        first = self._upload(gallery, "Dawn")
        second = self._upload(gallery, "Dusk", audio=True)

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(first.data["position"], 0)
        self.assertIsNone(first.data["audio_url"])
        self.assertTrue(first.data["image_url"].startswith(f"/media/images/{self.user.id}/"))
        self.assertEqual(second.data["position"], 1)
        self.assertTrue(second.data["audio_url"].startswith(f"/media/audio/{self.user.id}/"))

    def test_upload_without_title_is_rejected(self):
        gallery = self._gallery()

        response = self._upload(gallery, title="")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("detail", response.data)
        self.assertFalse(Artwork.objects.exists())

    def test_upload_to_foreign_gallery(self):
        other = self._gallery(owner=User.objects.create_user(username="bob", password="pass"))

        response = self._upload(other)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Artwork.objects.exists())

    def test_listing_is_refreshed_after_upload(self):
        gallery = self._gallery()
        self.assertEqual(self.client.get(f"{GALLERIES}{gallery.id}/artworks/").data, [])

        self._upload(gallery, "Dawn")
        self._upload(gallery, "Dusk")
        response = self.client.get(f"{GALLERIES}{gallery.id}/artworks/")

        self.assertEqual([item["title"] for item in response.data], ["Dawn", "Dusk"])
        self.assertEqual([item["position"] for item in response.data], [0, 1])


class ShareApiTests(GalleryApiTestCase):
    def test_share_then_view_anonymously(self):
        gallery = self._gallery(title="Public")
        self._artwork(gallery, 1)
        self._artwork(gallery, 0)

        response = self.client.post(f"{GALLERIES}{gallery.id}/share/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        slug = response.data["slug"]
        self.assertEqual(response.data["share_url"], f"http://testserver/shared/{slug}")

        self.client.force_authenticate(user=None)
        shared = self.client.get(f"/api/gallery/shared/{slug}/")

        self.assertEqual(shared.status_code, status.HTTP_200_OK)
        self.assertEqual(shared.data["title"], "Public")
        self.assertEqual([item["position"] for item in shared.data["artworks"]], [0, 1])
        self.assertFalse(shared.data["is_owner"])

    def test_share_url_is_served(self):
        gallery = self._gallery(title="Public")
        share_url = self.client.post(f"{GALLERIES}{gallery.id}/share/").data["share_url"]

        self.client.force_authenticate(user=None)
        response = self.client.get(share_url.replace("http://testserver", ""))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["id"], gallery.id)

    def test_private_and_unknown_slugs_look_the_same(self):
        self._gallery(share_slug="1-private", is_public=False)
        self.client.force_authenticate(user=None)

        private = self.client.get("/api/gallery/shared/1-private/")
        unknown = self.client.get("/api/gallery/shared/1-unknown/")

        self.assertEqual(private.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(unknown.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(private.data, unknown.data)

    def test_reshare_breaks_old_link(self):
        gallery = self._gallery()
        old = self.client.post(f"{GALLERIES}{gallery.id}/share/").data["slug"]
        new = self.client.post(f"{GALLERIES}{gallery.id}/share/").data["slug"]

        self.assertEqual(self.client.get(f"/api/gallery/shared/{old}/").status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get(f"/api/gallery/shared/{new}/").status_code, status.HTTP_200_OK)

    def test_cannot_share_foreign_gallery(self):
        other = self._gallery(owner=User.objects.create_user(username="bob", password="pass"))

        response = self.client.post(f"{GALLERIES}{other.id}/share/")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        other.refresh_from_db()
        self.assertFalse(other.is_public)

    def test_share_qr(self):
        gallery = self._gallery()
        self.assertEqual(self.client.get(f"{GALLERIES}{gallery.id}/share_qr/").status_code, status.HTTP_404_NOT_FOUND)

        self.client.post(f"{GALLERIES}{gallery.id}/share/")
        response = self.client.get(f"{GALLERIES}{gallery.id}/share_qr/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response["Content-Type"], "image/png")
        self.assertTrue(response.content.startswith(b"\x89PNG"))


class ViewerApiTests(GalleryApiTestCase):
    def test_viewer_must_be_opened_first(self):
        self.assertEqual(self.client.get(VIEWER).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.post(f"{VIEWER}next/").status_code, status.HTTP_404_NOT_FOUND)

    def test_open_own_gallery_auto_creates_empty(self):
        response = self.client.post(f"{VIEWER}open/", {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["state"], "empty")
        self.assertEqual(response.data["total"], 0)
        self.assertTrue(response.data["is_owner"])

    def test_browse_and_toggle_audio(self):
        gallery = self._gallery()
        self._artwork(gallery, 0, audio_url="/media/audio/0.mp3")
        self._artwork(gallery, 1)
        self._artwork(gallery, 2)

        opened = self.client.post(f"{VIEWER}open/", {"gallery_id": gallery.id}, format="json")
        self.assertEqual((opened.data["position"], opened.data["total"]), (1, 3))

        playing = self.client.post(f"{VIEWER}toggle_audio/", {}, format="json")
        self.assertEqual(playing.data["audio"]["state"], "playing")
        self.assertEqual(playing.data["audio"]["session_id"], 1)

        paused = self.client.post(f"{VIEWER}toggle_audio/", {"offset": 4.5}, format="json")
        self.assertEqual(paused.data["audio"]["state"], "loaded-paused")
        self.assertEqual(paused.data["audio"]["offset"], 4.5)

        self.client.post(f"{VIEWER}toggle_audio/", {}, format="json")
        moved = self.client.post(f"{VIEWER}next/")
        self.assertEqual(moved.data["position"], 2)
        self.assertIsNone(moved.data["audio"])

        silent = self.client.post(f"{VIEWER}toggle_audio/", {}, format="json")
        self.assertIsNone(silent.data["audio"])

        self.client.post(f"{VIEWER}next/")
        last = self.client.post(f"{VIEWER}next/")
        self.assertEqual((last.data["position"], last.data["total"]), (3, 3))
        self.assertFalse(last.data["has_next"])

        self.assertEqual(self.client.get(VIEWER).data["position"], 3)

    def test_audio_ended_keeps_cursor(self):
        gallery = self._gallery()
        self._artwork(gallery, 0, audio_url="/media/audio/0.mp3")
        self._artwork(gallery, 1)
        self.client.post(f"{VIEWER}open/", {"gallery_id": gallery.id}, format="json")
        self.client.post(f"{VIEWER}toggle_audio/", {}, format="json")

        ended = self.client.post(f"{VIEWER}audio_ended/", {"session_id": 1}, format="json")

        self.assertEqual(ended.data["position"], 1)
        self.assertEqual(ended.data["audio"]["state"], "loaded-paused")

    def test_open_shared_gallery_anonymously(self):
        gallery = self._gallery(share_slug="1-public", is_public=True)
        self._artwork(gallery, 0)
        self.client.force_authenticate(user=None)

        response = self.client.post(f"{VIEWER}open/", {"slug": "1-public"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["gallery_id"], gallery.id)
        self.assertFalse(response.data["is_owner"])

    def test_open_private_slug(self):
        self._gallery(share_slug="1-private", is_public=False)
        self.client.force_authenticate(user=None)

        response = self.client.post(f"{VIEWER}open/", {"slug": "1-private"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertNotIn("gallery_id", response.data)

    def test_open_foreign_gallery_by_id(self):
        other = self._gallery(owner=User.objects.create_user(username="bob", password="pass"))

        response = self.client.post(f"{VIEWER}open/", {"gallery_id": other.id}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_close_discards_state(self):
        self.client.post(f"{VIEWER}open/", {}, format="json")

        self.assertEqual(self.client.post(f"{VIEWER}close/").status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get(VIEWER).status_code, status.HTTP_404_NOT_FOUND)

    def test_state_is_dropped_when_the_viewer_signs_out(self):
        private = self._gallery(title="Secret")
        self._artwork(private, 0, audio_url="/media/audio/0.mp3")
        self.client.post(f"{VIEWER}open/", {"gallery_id": private.id}, format="json")

        self.client.force_authenticate(user=None)
        anonymous = self.client.get(VIEWER)

        self.assertEqual(anonymous.status_code, status.HTTP_404_NOT_FOUND)
        self.assertNotIn("artwork", anonymous.data)

        # 状态已被清除，原用户重新登录也需要重新打开
        self.client.force_authenticate(user=self.user)
        self.assertEqual(self.client.get(VIEWER).status_code, status.HTTP_404_NOT_FOUND)

    def test_state_is_not_shared_with_another_user(self):
        private = self._gallery(title="Secret")
        self._artwork(private, 0, audio_url="/media/audio/0.mp3")
        self.client.post(f"{VIEWER}open/", {"gallery_id": private.id}, format="json")

        self.client.force_authenticate(user=User.objects.create_user(username="bob", password="pass"))

        self.assertEqual(self.client.get(VIEWER).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.post(f"{VIEWER}toggle_audio/", {}, format="json").status_code, status.HTTP_404_NOT_FOUND)

    def test_shared_view_closes_when_gallery_is_unshared(self):
        gallery = self._gallery(share_slug="1-public", is_public=True)
        self._artwork(gallery, 0)
        self._artwork(gallery, 1)
        self.client.force_authenticate(user=None)
        self.client.post(f"{VIEWER}open/", {"slug": "1-public"}, format="json")
        self.assertEqual(self.client.post(f"{VIEWER}next/").data["position"], 2)

        Gallery.objects.filter(id=gallery.id).update(is_public=False)

        self.assertEqual(self.client.get(VIEWER).status_code, status.HTTP_404_NOT_FOUND)

    def test_shared_view_closes_when_link_is_reissued(self):
        gallery = self._gallery(share_slug="1-public", is_public=True)
        self._artwork(gallery, 0)
        self.client.force_authenticate(user=None)
        self.client.post(f"{VIEWER}open/", {"slug": "1-public"}, format="json")

        Gallery.objects.filter(id=gallery.id).update(share_slug="2-public")

        self.assertEqual(self.client.post(f"{VIEWER}next/").status_code, status.HTTP_404_NOT_FOUND)
