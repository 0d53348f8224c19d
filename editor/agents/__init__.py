"""Chat editor model agents."""
from editor.agents.base_agent import BaseChatAgent
from editor.agents.syllabind_agent import SyllabindChatAgent
