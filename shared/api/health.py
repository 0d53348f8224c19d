"""Health check API endpoints."""
from fastapi import APIRouter

from config import get_settings
from database import get_db_manager

router = APIRouter(tags=["health"])


@router.get("/")
def read_root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "Syllabind Chat Backend",
        "version": "1.0.0"
    }


@router.get("/config/model")
def get_model_config():
    """Return the model configuration the chat agent runs with."""
    settings = get_settings()
    return {
        "provider": "anthropic",
        "model_id": settings.llm_model,
        "max_tokens": settings.llm_max_tokens,
        "requests_per_minute": settings.llm_requests_per_minute,
        "max_tool_iterations": settings.max_tool_iterations,
    }


@router.get("/health/db")
def database_health():
    """Database health check."""
    try:
        db_manager = get_db_manager()
        is_healthy = db_manager.health_check()

        if is_healthy:
            return {"status": "ok", "database": "connected"}
        else:
            return {"status": "error", "database": "connection_failed"}
    except Exception as e:
        return {"status": "error", "database": f"error: {str(e)}"}
