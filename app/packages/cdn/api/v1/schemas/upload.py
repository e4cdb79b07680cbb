"""上传接口的请求/响应模型。"""

from typing import Any, Optional

from pydantic import Field

from app.packages.cdn.api.v1.schemas.common import ResponseEnvelope
from app.packages.cdn.models.base import CamelModel


class UrlUploadBody(CamelModel):
    url: str = Field(..., min_length=1)
    filename: Optional[str] = None


class Base64UploadBody(CamelModel):
    data: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1)
    mime_type: Optional[str] = None


UploadResponse = ResponseEnvelope[dict[str, Any]]
MultiUploadResponse = ResponseEnvelope[list[dict[str, Any]]]
