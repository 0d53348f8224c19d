"""
Syllabind Chat Backend - FastAPI Application

Entry point for the conversational Syllabind editor: the chat WebSocket,
the persisted chat history routes and health checks.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings, validate_required_settings
from database import get_db_manager
from shared.api import health
from editor.api import chat_messages, chat_socket

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Syllabind Chat Backend",
    description="Conversational curriculum editing agent with tool use",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(chat_messages.router)
app.include_router(chat_socket.router)


@app.on_event("startup")
async def startup_event():
    """Validate configuration and database connection on startup."""
    logger.info("Starting Syllabind Chat Backend...")
    validate_required_settings()

    db_manager = get_db_manager()
    is_healthy = db_manager.health_check()

    if not is_healthy:
        logger.warning("Database health check failed on startup")
    else:
        logger.info("Database connection healthy")

    logger.info("Application started successfully")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development"
    )
