"""Assistant replies posted through the message pipeline."""
import logging
from typing import Optional, Protocol, Sequence

from mentoring.domain.chat.models import Message, MessageType
from mentoring.domain.chat.services import MessageService
from mentoring.domain.common.errors import GenerationError, ValidationError

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """External text-generation collaborator."""

    async def generate(self, prompt: str, history: Sequence[Message]) -> Optional[str]:
        """Return generated text, or None when nothing usable came back."""
        ...


class AssistantService:
    def __init__(
        self,
        message_service: MessageService,
        generator: TextGenerator,
        assistant_id: str = "assistant",
        history_limit: int = 20,
    ):
        self.message_service = message_service
        self.generator = generator
        self.assistant_id = assistant_id
        self.history_limit = history_limit

    async def reply(self, conversation_id: str, prompt: str) -> Message:
        """Ask the generator for a reply and post it as the assistant identity."""
        if not (prompt or "").strip():
            raise ValidationError("prompt cannot be empty")
        history = await self.message_service.list_messages(conversation_id, limit=self.history_limit)

        logger.info(f"🤖 [ASSISTANT] Generating reply in {conversation_id} from {len(history)} messages")
        try:
            text = await self.generator.generate(prompt, history)
        except Exception as e:
            logger.error(f"❌ [ASSISTANT] Generation failed in {conversation_id}: {e}")
            raise GenerationError(f"Text generation failed: {e}") from e
        if not (text or "").strip():
            raise GenerationError("Text generation returned an empty reply")

        return await self.message_service.send_message(
            conversation_id, self.assistant_id, text.strip(), MessageType.TEXT
        )
