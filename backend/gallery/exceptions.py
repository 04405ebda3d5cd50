"""画廊领域错误，以及将其映射为 HTTP 响应的 DRF 异常处理器。"""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler


class GalleryError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "请求无法完成"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(GalleryError):
    """缺少标题或图片等输入问题，在任何外部调用前抛出。"""

    default_detail = "输入不合法"


class AssetWriteFailed(GalleryError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "文件上传失败"


class RecordWriteFailed(GalleryError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "保存记录失败"


class NotFound(GalleryError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "画廊不存在或无权访问"


class Forbidden(GalleryError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "无权访问该画廊"


class Unauthenticated(GalleryError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "请先登录"


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None or not isinstance(exc, GalleryError):
        return response
    return Response({"detail": exc.detail}, status=exc.status_code)
