"""Domain models for business logic."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class StepSnapshot(BaseModel):
    """A step as the chat agent sees it."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    position: int
    type: str  # reading or exercise
    title: str
    url: Optional[str] = None
    note: Optional[str] = None
    author: Optional[str] = None
    creation_date: Optional[str] = None
    media_type: Optional[str] = None
    prompt_text: Optional[str] = None
    estimated_minutes: Optional[int] = None


class WeekSnapshot(BaseModel):
    """A week with its ordered steps."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    index: int
    title: Optional[str] = None
    description: Optional[str] = None
    steps: List[StepSnapshot] = Field(default_factory=list)


class SyllabusSnapshot(BaseModel):
    """Complete syllabind document - the read model handed to the agent."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str = ""
    audience_level: str
    duration_weeks: int
    status: str
    creator_id: Optional[str] = None
    weeks: List[WeekSnapshot] = Field(default_factory=list)

    def get_week(self, index: int) -> Optional[WeekSnapshot]:
        for week in self.weeks:
            if week.index == index:
                return week
        return None


class TextFragment(BaseModel):
    """An incremental piece of assistant text from the model stream."""
    text: str


class ToolCallRequest(BaseModel):
    """The model asking for a named tool to be invoked."""
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)
