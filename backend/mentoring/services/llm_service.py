"""LLM service: Gemini text generation for assistant replies."""
import logging
from typing import Optional, Sequence

from google import genai

from mentoring.domain.chat.models import Message

logger = logging.getLogger(__name__)


class LLMRateLimitError(Exception):
    """Raised when the LLM provider returns 429 / RESOURCE_EXHAUSTED (quota or rate limit)."""


def _is_rate_limited(error: Exception) -> bool:
    err_str = str(error).upper()
    return "429" in err_str or "RESOURCE_EXHAUSTED" in err_str


def build_prompt(prompt: str, history: Sequence[Message], assistant_id: str) -> str:
    """Flatten the conversation history and the new prompt into one text prompt."""
    lines = []
    for message in history:
        speaker = "Assistant" if message.sender_id == assistant_id else f"User {message.sender_id}"
        lines.append(f"{speaker}: {message.content}")
    lines.append(f"User: {prompt}")
    lines.append("Assistant:")
    return "\n".join(lines)


async def _generate_text_gemini_async(client: genai.Client, prompt: str, model: str) -> Optional[str]:
    """Call Gemini async generate_content; returns response text or None."""
    try:
        response = await client.aio.models.generate_content(
            model=model,
            contents=prompt,
        )
        text = (getattr(response, "text", None) or "").strip()
        return text or None
    except Exception as e:
        if _is_rate_limited(e):
            raise LLMRateLimitError(
                "Google Gemini (GenAI) rate limit exceeded (quota or requests per minute); try again shortly."
            ) from e
        logger.warning("generate_text_async (Gemini) failed: %s", e)
        return None


class GeminiTextGenerator:
    """
    Text generator backed by Google Gemini.
    On 429, retries once with the backup model (llm_backup_text_model) if configured.
    """

    def __init__(
        self,
        gemini_api_key: Optional[str] = None,
        default_text_model: Optional[str] = None,
        backup_text_model: Optional[str] = None,
        assistant_id: str = "assistant",
    ):
        self._gemini_api_key = (gemini_api_key or "").strip() or None
        self._default_text_model = (default_text_model or "").strip() or "gemini-2.0-flash"
        self._backup_text_model = (backup_text_model or "").strip() or None
        self._assistant_id = assistant_id
        self._client: Optional[genai.Client] = None

    @property
    def configured(self) -> bool:
        return self._gemini_api_key is not None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self._gemini_api_key)
        return self._client

    async def generate(self, prompt: str, history: Sequence[Message]) -> Optional[str]:
        """Generate a reply to prompt given the conversation history. None when nothing usable came back."""
        if not self._gemini_api_key:
            logger.warning("generate called without gemini_api_key")
            return None
        contents = build_prompt(prompt, history, self._assistant_id)
        primary = self._default_text_model
        client = self._get_client()
        try:
            return await _generate_text_gemini_async(client, contents, primary)
        except LLMRateLimitError:
            if self._backup_text_model and self._backup_text_model != primary:
                logger.info("generate 429, retrying with backup model %s", self._backup_text_model)
                try:
                    return await _generate_text_gemini_async(client, contents, self._backup_text_model)
                except LLMRateLimitError:
                    logger.warning("generate backup model also rate limited")
                    return None
            logger.warning("generate rate limited and no backup model configured")
            return None
