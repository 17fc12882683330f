from pydantic import BaseModel, ConfigDict


class StrictBaseModel(BaseModel):
    """Plugin configuration: unknown keys rejected, camelCase keys as written in pipeline files."""
    model_config = ConfigDict(extra="forbid", strict=True, frozen=True, populate_by_name=True)
