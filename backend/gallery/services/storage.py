"""作品资源存储：图片与音频两个独立空间，写入后返回公开地址。"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import quote

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings
from django.core.files.storage import FileSystemStorage

from ..exceptions import AssetWriteFailed
from ..utils_uploads import AUDIO_NAMESPACE, IMAGE_NAMESPACE

logger = logging.getLogger(__name__)


class StorageBackendNotConfigured(RuntimeError):
    """当目标存储后端不可用时抛出。"""


@dataclass(frozen=True)
class S3Config:
    endpoint_url: Optional[str]
    region_name: Optional[str]
    access_key: Optional[str]
    secret_key: Optional[str]
    signature_version: str
    buckets: Dict[str, str] = field(default_factory=dict)
    public_base_url: Optional[str] = None


def _content_type(blob) -> str:
    return getattr(blob, "content_type", None) or "application/octet-stream"


class S3AssetStore:
    """每个空间对应一个 bucket，对象以 public-read 写入。"""

    def __init__(self, config: S3Config) -> None:
        self.config = config
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self.config.endpoint_url,
                region_name=self.config.region_name,
                aws_access_key_id=self.config.access_key,
                aws_secret_access_key=self.config.secret_key,
                config=Config(signature_version=self.config.signature_version),
            )
        return self._client

    def _bucket(self, namespace: str) -> str:
        try:
            return self.config.buckets[namespace]
        except KeyError as exc:
            raise StorageBackendNotConfigured(f"存储空间 {namespace} 未配置 bucket") from exc

    def public_url(self, namespace: str, key: str) -> str:
        bucket = self._bucket(namespace)
        quoted = quote(key)
        if self.config.public_base_url:
            return f"{self.config.public_base_url.rstrip('/')}/{bucket}/{quoted}"
        if self.config.endpoint_url:
            return f"{self.config.endpoint_url.rstrip('/')}/{bucket}/{quoted}"
        return f"https://{bucket}.s3.{self.config.region_name or 'us-east-1'}.amazonaws.com/{quoted}"

    def put(self, namespace: str, key: str, blob) -> str:
        bucket = self._bucket(namespace)
        if hasattr(blob, "seek"):
            blob.seek(0)
        try:
            self.client.put_object(
                Bucket=bucket,
                Key=key,
                Body=blob,
                ContentType=_content_type(blob),
                ACL="public-read",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.exception("资源写入失败", extra={"namespace": namespace, "key": key})
            raise AssetWriteFailed(f"{namespace} 文件上传失败") from exc
        return self.public_url(namespace, key)


class LocalAssetStore:
    """开发环境：写入 MEDIA_ROOT/<namespace>/，由 MEDIA_URL 提供访问。"""

    def __init__(self, location: str, base_url: str, public_base_url: Optional[str] = None) -> None:
        self.location = location
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.public_base_url = public_base_url

    def _storage(self, namespace: str) -> FileSystemStorage:
        if namespace not in (IMAGE_NAMESPACE, AUDIO_NAMESPACE):
            raise StorageBackendNotConfigured(f"未知的存储空间: {namespace}")
        return FileSystemStorage(
            location=os.path.join(self.location, namespace),
            base_url=f"{self.base_url}{namespace}/",
        )

    def put(self, namespace: str, key: str, blob) -> str:
        storage = self._storage(namespace)
        try:
            name = storage.save(key, blob)
        except OSError as exc:
            logger.exception("资源写入失败", extra={"namespace": namespace, "key": key})
            raise AssetWriteFailed(f"{namespace} 文件上传失败") from exc
        url = storage.url(name)
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}{url}"
        return url


def _load_s3_config() -> S3Config:
    buckets = {
        IMAGE_NAMESPACE: getattr(settings, "ARTWORK_IMAGE_BUCKET", None),
        AUDIO_NAMESPACE: getattr(settings, "ARTWORK_AUDIO_BUCKET", None),
    }
    missing = [namespace for namespace, bucket in buckets.items() if not bucket]
    if missing:
        raise StorageBackendNotConfigured(f"未配置 bucket: {', '.join(missing)}")

    return S3Config(
        endpoint_url=getattr(settings, "AWS_S3_ENDPOINT_URL", None),
        region_name=getattr(settings, "AWS_S3_REGION_NAME", None),
        access_key=getattr(settings, "AWS_ACCESS_KEY_ID", None),
        secret_key=getattr(settings, "AWS_SECRET_ACCESS_KEY", None),
        signature_version=getattr(settings, "AWS_S3_SIGNATURE_VERSION", "s3v4"),
        buckets=buckets,
        public_base_url=getattr(settings, "ASSET_PUBLIC_BASE_URL", None),
    )


def get_asset_store():
    storage_backend = getattr(settings, "STORAGE_BACKEND", "local")
    if storage_backend == "s3":
        return S3AssetStore(_load_s3_config())
    if storage_backend == "local":
        return LocalAssetStore(
            location=str(settings.MEDIA_ROOT),
            base_url=settings.MEDIA_URL,
            public_base_url=getattr(settings, "ASSET_PUBLIC_BASE_URL", None),
        )
    raise StorageBackendNotConfigured(f"不支持的存储后端: {storage_backend}")
