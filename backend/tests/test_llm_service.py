"""GeminiTextGenerator tests with the google-genai client mocked out."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from mentoring.domain.chat.models import Message
from mentoring.services.llm_service import GeminiTextGenerator, build_prompt


def _generator_with(generate_content: AsyncMock, backup: str = "gemini-backup") -> GeminiTextGenerator:
    generator = GeminiTextGenerator(
        gemini_api_key="test-key", default_text_model="gemini-primary", backup_text_model=backup
    )
    client = MagicMock()
    client.aio.models.generate_content = generate_content
    generator._client = client
    return generator


async def test_generate_returns_stripped_text():
    generate_content = AsyncMock(return_value=SimpleNamespace(text="  Drink water.  "))
    generator = _generator_with(generate_content)

    assert await generator.generate("tips?", []) == "Drink water."
    assert generate_content.await_args.kwargs["model"] == "gemini-primary"


async def test_rate_limit_retries_backup_model():
    generate_content = AsyncMock(
        side_effect=[Exception("429 RESOURCE_EXHAUSTED"), SimpleNamespace(text="From backup")]
    )
    generator = _generator_with(generate_content)

    assert await generator.generate("tips?", []) == "From backup"
    assert [c.kwargs["model"] for c in generate_content.await_args_list] == ["gemini-primary", "gemini-backup"]


async def test_rate_limit_without_backup_returns_none():
    generate_content = AsyncMock(side_effect=Exception("429 Too Many Requests"))
    generator = _generator_with(generate_content, backup="")

    assert await generator.generate("tips?", []) is None
    assert generate_content.await_count == 1


async def test_other_failures_return_none():
    generator = _generator_with(AsyncMock(side_effect=Exception("500 internal")))

    assert await generator.generate("tips?", []) is None


async def test_missing_key_returns_none():
    generator = GeminiTextGenerator(gemini_api_key="")

    assert not generator.configured
    assert await generator.generate("tips?", []) is None


def test_build_prompt_labels_speakers():
    history = [
        Message.create("c1", "C1", "I slept badly"),
        Message.create("c1", "assistant", "Try a wind-down routine"),
    ]

    prompt = build_prompt("What else?", history, "assistant")

    assert prompt.splitlines() == [
        "User C1: I slept badly",
        "Assistant: Try a wind-down routine",
        "User: What else?",
        "Assistant:",
    ]
