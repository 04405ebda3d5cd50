import mimetypes
import os
import re
import time

from django.conf import settings

SAFE_EXT_RE = re.compile(r"[^a-z0-9]+")

IMAGE_NAMESPACE = "images"
AUDIO_NAMESPACE = "audio"

CONTENT_TYPE_PREFIXES = {
    IMAGE_NAMESPACE: "image/",
    AUDIO_NAMESPACE: "audio/",
}
MAX_SIZE_MB = 10


def max_upload_mb() -> int:
    return int(getattr(settings, "ARTWORK_MAX_UPLOAD_MB", MAX_SIZE_MB))


def file_extension(filename: str, content_type: str = "") -> str:
    """保留原始扩展名；没有时按 content_type 推断"""
    ext = os.path.splitext(filename or "")[1].lower().lstrip(".")
    ext = SAFE_EXT_RE.sub("", ext)
    if ext:
        return f".{ext}"
    return mimetypes.guess_extension(content_type or "") or ""


def build_object_key(owner_id: int, filename: str, content_type: str = "") -> str:
    # 纳秒时间戳，同一用户连续上传也不会撞名
    return f"{owner_id}/{time.time_ns()}{file_extension(filename, content_type)}"


def validate_upload_meta(namespace: str, content_type: str, size: int):
    prefix = CONTENT_TYPE_PREFIXES.get(namespace)
    if prefix is None:
        raise ValueError(f"未知的存储空间: {namespace}")
    if not (content_type or "").startswith(prefix):
        raise ValueError("不支持的文件类型")
    limit = max_upload_mb()
    if size > limit * 1024 * 1024:
        raise ValueError(f"文件过大，最大{limit}MB")
