"""Data access layer."""
from shared.repositories.syllabus_repository import SyllabusRepository
from shared.repositories.chat_message_repository import ChatMessageRepository
