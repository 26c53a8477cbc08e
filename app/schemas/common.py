from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# 응답/요청 JSON 은 camelCase, 파이썬 쪽은 snake_case
class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
