"""模型基类：统一 camelCase 别名，内部保持 snake_case。

持久化索引与 API 输出都使用别名（camelCase），Python 代码中使用字段名。
"""

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from app.packages.cdn.core.exceptions import ValidationFailed

ModelT = TypeVar("ModelT", bound=BaseModel)


class CamelModel(BaseModel):
    """可变模型：请求参数等。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_public(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class FrozenCamelModel(CamelModel):
    """不可变模型：修改时整体替换，读方永远看到完整对象。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def build_model(model_cls: type[ModelT], message: str, **values: Any) -> ModelT:
    """构造模型，校验失败时转换为核心层的 ``ValidationFailed``。"""
    try:
        return model_cls(**{key: value for key, value in values.items() if value is not None})
    except PydanticValidationError as exc:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationFailed(message, data=errors) from exc
