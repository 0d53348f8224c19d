"""Chat editor services."""
from editor.services.document_store import DocumentStore
from editor.services.mutation_applier import MutationApplier
from editor.services.conversation_store import ConversationStore
