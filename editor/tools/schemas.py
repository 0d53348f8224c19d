"""
Tool parameter models.

Each tool's parameters are a Pydantic model; the JSON input schema sent to the
model is derived from it with $refs inlined and titles dropped.
"""

import copy
from typing import Any, Literal, Optional, Type
from pydantic import BaseModel, ConfigDict, Field, model_validator

AudienceLevel = Literal["Beginner", "Intermediate", "Advanced"]
MediaType = Literal["Book", "Youtube video", "Blog/Article", "Podcast"]


class ToolParams(BaseModel):
    """Base for tool parameter models: unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")


class ReadSyllabindParams(ToolParams):
    pass


class WebSearchParams(ToolParams):
    query: str = Field(min_length=1, description="The search query (be specific about topic and resource type)")
    include_recent: bool = Field(default=False, description="Prioritize content from the past year")


class StepInput(ToolParams):
    type: Literal["reading", "exercise"] = Field(description="reading or exercise")
    title: str = Field(min_length=1)
    url: Optional[str] = Field(default=None, description="Link to the reading")
    note: Optional[str] = Field(default=None, description="Short note shown with the step (markdown allowed)")
    author: Optional[str] = None
    creation_date: Optional[str] = None
    media_type: Optional[MediaType] = None
    prompt_text: Optional[str] = Field(default=None, description="Exercise prompt (markdown allowed)")
    estimated_minutes: Optional[int] = Field(default=None, ge=1, le=600)

    @model_validator(mode="after")
    def _drop_fields_of_other_type(self) -> "StepInput":
        if self.type == "reading":
            self.prompt_text = None
        else:
            self.url = None
            self.author = None
            self.creation_date = None
            self.media_type = None
        return self


class AddStepParams(ToolParams):
    week_index: int = Field(ge=1, description="1-based week index")
    step: StepInput
    position: Optional[int] = Field(
        default=None, ge=1, description="1-based position to insert at; omit to append"
    )


class RemoveStepParams(ToolParams):
    week_index: int = Field(ge=1, description="1-based week index")
    step_position: Optional[int] = Field(default=None, ge=1, description="1-based position of the step")
    step_id: Optional[int] = Field(default=None, description="Step id, as returned by read_current_syllabind")

    @model_validator(mode="after")
    def _require_step_reference(self) -> "RemoveStepParams":
        if self.step_position is None and self.step_id is None:
            raise ValueError("either step_position or step_id is required")
        return self


class UpdateWeekParams(ToolParams):
    week_index: int = Field(ge=1, description="1-based week index")
    title: Optional[str] = None
    description: Optional[str] = None


class UpdateBasicsParams(ToolParams):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    audience_level: Optional[AudienceLevel] = None
    duration_weeks: Optional[int] = Field(default=None, ge=1, le=52)


def to_input_schema(model: Type[BaseModel]) -> dict[str, Any]:
    """Build a self-contained JSON schema for a tool's input."""
    schema = model.model_json_schema()
    defs = schema.pop("$defs", {})

    def transform(obj: Any) -> Any:
        if isinstance(obj, list):
            return [transform(item) for item in obj]
        if not isinstance(obj, dict):
            return obj
        if "$ref" in obj:
            name = obj["$ref"].rsplit("/", 1)[-1]
            resolved = transform(copy.deepcopy(defs[name]))
            extra = {k: transform(v) for k, v in obj.items() if k != "$ref"}
            return {**resolved, **extra}
        result = {}
        for key, value in obj.items():
            if key == "title":
                continue
            if key == "properties":
                result[key] = {name: transform(prop) for name, prop in value.items()}
            else:
                result[key] = transform(value)
        return result

    result = transform(schema)
    result.setdefault("properties", {})
    result["type"] = "object"
    return result
