"""Shared models."""
from shared.models.entities import Base, Syllabus, Week, Step, ChatMessageRecord
from shared.models.domain import SyllabusSnapshot, WeekSnapshot, StepSnapshot, TextFragment, ToolCallRequest
from shared.models.schemas import ChatMessageResponse, ChatHistoryResponse, ClearChatResponse
