"""文件管理接口的请求/响应模型。"""

from typing import Any

from pydantic import BaseModel, Field

from app.packages.cdn.api.v1.schemas.common import ResponseEnvelope


class DeleteManyBody(BaseModel):
    ids: list[str] = Field(..., min_length=1)


class DeleteManyResult(BaseModel):
    deleted: list[str]
    failed: list[str]


class CleanupResult(BaseModel):
    count: int


FileResponse = ResponseEnvelope[dict[str, Any]]
FilesListResponse = ResponseEnvelope[dict[str, Any]]
StatsResponse = ResponseEnvelope[dict[str, Any]]
DeleteResponse = ResponseEnvelope[Any]
DeleteManyResponse = ResponseEnvelope[DeleteManyResult]
CleanupResponse = ResponseEnvelope[CleanupResult]
