# =============================================================================
# LLM ADAPTER
# =============================================================================
"""
The single capability the summarizer needs from a language model:

    await generator.generate([{"role": ..., "content": ...}]) -> {"text": ...}

AutogenTextGenerator implements it over AutoGen's OpenAIChatCompletionClient.
Any collaborator failure surfaces as TransientError so callers can fall back
to a non-LLM path.
"""

import os
from typing import Any, Dict, List, Mapping, Optional, Protocol
import logging

from autogen_core.models import AssistantMessage, SystemMessage, UserMessage
from autogen_ext.models.openai import OpenAIChatCompletionClient

from .errors import StateError, TransientError

logger = logging.getLogger(__name__)


ChatMessage = Mapping[str, str]


class TextGenerator(Protocol):
    async def generate(self, messages: List[ChatMessage]) -> Dict[str, str]:
        ...


def to_autogen_messages(messages: List[ChatMessage]) -> List[Any]:
    converted = []
    for message in messages:
        role = message.get('role', 'user')
        content = message.get('content', '')
        if role == 'system':
            converted.append(SystemMessage(content=content))
        elif role == 'assistant':
            converted.append(AssistantMessage(content=content, source='assistant'))
        else:
            converted.append(UserMessage(content=content, source='user'))
    return converted


class AutogenTextGenerator:
    """generate(messages) -> {"text"} over an OpenAI chat completion client"""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        temperature: float = 0.7,
        model_client: Optional[Any] = None
    ):
        self.model = model
        if model_client is not None:
            self.model_client = model_client
        else:
            self.model_client = OpenAIChatCompletionClient(
                model=model,
                api_key=api_key or os.getenv("OPENAI_API_KEY"),
                temperature=temperature,
            )
        self._closed = False

    @classmethod
    def from_config(cls, config) -> 'AutogenTextGenerator':
        return cls(model=config.llm_model, api_key=config.llm_api_key)

    async def generate(self, messages: List[ChatMessage]) -> Dict[str, str]:
        if self._closed:
            raise StateError("Text generator used after close()")

        try:
            result = await self.model_client.create(to_autogen_messages(messages))
        except Exception as e:
            raise TransientError(f"LLM call failed ({self.model}): {e}") from e

        content = result.content
        if not isinstance(content, str):
            raise TransientError(f"LLM returned non-text content ({self.model})")
        return {'text': content}

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.model_client.close()
        except Exception as e:
            logger.error(f"Failed to close model client: {e}")
