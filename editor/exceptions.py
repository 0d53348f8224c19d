"""
Custom Exception Hierarchy for the Chat Editor

Exception Hierarchy:
    EditorError (base)
    ├── ToolError                  (fed back to the model as a tool result)
    │   ├── ToolValidationError
    │   ├── NotFoundError
    │   └── ToolExecutionError
    ├── ModelUnavailableError      (error frame, turn ends)
    ├── TransportClosedError       (silent cleanup)
    ├── ProtocolViolationError     (frame in the wrong state)
    │   └── OutstandingToolError
    ├── PromptTemplateError
    └── StateTransitionError
"""

from typing import Optional


class EditorError(Exception):
    """Base exception for all chat editor errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# Tool Errors

class ToolError(EditorError):
    """Base exception for failures reported to the model as tool results."""

    kind = "tool_error"

    def to_tool_result(self) -> dict:
        result = {"error": self.kind, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result


class ToolValidationError(ToolError):
    """Raised when tool parameters are missing, malformed or violate document rules."""

    kind = "validation_error"

    def __init__(self, tool_name: str, message: str, errors: Optional[list[str]] = None):
        super().__init__(f"Invalid parameters for {tool_name}: {message}", {"errors": errors} if errors else None)
        self.tool_name = tool_name
        self.errors = errors or []


class NotFoundError(ToolError):
    """Raised when a referenced syllabus, week or step does not exist."""

    kind = "not_found"

    def __init__(self, entity: str, reference: object):
        super().__init__(f"{entity} not found: {reference}")
        self.entity = entity
        self.reference = reference


class ToolExecutionError(ToolError):
    """Raised when a tool's external dependency fails."""

    kind = "execution_error"

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"{tool_name} failed: {message}")
        self.tool_name = tool_name


# Model Errors

class ModelUnavailableError(EditorError):
    """Raised when the model capability call fails."""

    def __init__(self, message: str, model_name: Optional[str] = None):
        super().__init__(message)
        self.model_name = model_name


# Transport Errors

class TransportClosedError(EditorError):
    """Raised when the client channel is gone."""
    pass


# Protocol Errors

class ProtocolViolationError(EditorError):
    """Raised when a frame or model event arrives in a state that cannot accept it."""

    def __init__(self, message: str, state: Optional[str] = None):
        super().__init__(message)
        self.state = state


class OutstandingToolError(ProtocolViolationError):
    """Raised when a second tool call is proposed while one is unresolved."""

    def __init__(self, outstanding_tool: str, requested_tool: str):
        super().__init__(
            f"Tool '{requested_tool}' requested while '{outstanding_tool}' is still unresolved"
        )
        self.outstanding_tool = outstanding_tool
        self.requested_tool = requested_tool


# Prompt Errors

class PromptTemplateError(EditorError):
    """Raised when prompt template rendering fails."""

    def __init__(self, template_name: str, missing_vars: list[str]):
        message = f"Prompt template '{template_name}' missing variables: {', '.join(missing_vars)}"
        super().__init__(message)
        self.template_name = template_name
        self.missing_vars = missing_vars


# State Errors

class StateTransitionError(EditorError):
    """Raised when a state transition is invalid."""

    def __init__(self, from_state: str, to_state: str, reason: str = "transition not allowed"):
        message = f"Invalid state transition from '{from_state}' to '{to_state}': {reason}"
        super().__init__(message)
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
