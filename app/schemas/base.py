from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Mobile clients speak camelCase; Python code keeps snake_case."""

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class StatusResponse(CamelModel):
    success: bool = True
    message: str
