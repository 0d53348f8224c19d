"""Custom exception hierarchy for HTTP-facing errors."""
from fastapi import HTTPException, status


class SyllabindException(Exception):
    """Base exception for all application errors."""
    pass


class SyllabusNotFoundException(SyllabindException):
    """Raised when a syllabind is not found."""

    def __init__(self, syllabus_id: int):
        self.syllabus_id = syllabus_id
        super().__init__(f"Syllabind {syllabus_id} not found")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Syllabind {self.syllabus_id} not found"
        )


class SearchUnavailableException(SyllabindException):
    """Raised when the web search backend is unconfigured or failing."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Web search temporarily unavailable"
        )


class LLMProviderException(SyllabindException):
    """Raised when LLM provider fails."""

    def __init__(self, original_error: Exception):
        self.original_error = original_error
        super().__init__(f"LLM provider error: {str(original_error)}")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI service temporarily unavailable"
        )
