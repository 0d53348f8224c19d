"""Chat session orchestration."""
from editor.orchestration.engine import ChatSessionEngine
