"""
Chat-model client used for extraction, reranking and query expansion.
"""

import asyncio
import json
import logging
import re
from typing import Any

from langchain_core.messages import HumanMessage

from fact_memory.config import LLMConfig

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


class LLMError(Exception):
    """The chat model is unavailable or a completion failed."""


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Parse the first ``{...}`` span in a completion, or None."""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_json_array(text: str) -> list[Any] | None:
    """Parse the first ``[...]`` span in a completion, or None."""
    match = _JSON_ARRAY.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, list) else None


class LLMClient:
    """
    Thin async wrapper around ChatOllama.

    The model is created on first use; the blocking ``invoke`` call runs in
    a worker thread and is bounded by ``config.timeout_seconds``.
    """

    def __init__(self, config: LLMConfig | None = None):
        self.config = config or LLMConfig()
        self._llm = None

    def _get_llm(self):
        """Get or create LLM instance."""
        if self._llm is None:
            try:
                from langchain_ollama import ChatOllama
                self._llm = ChatOllama(
                    model=self.config.model,
                    temperature=self.config.temperature,
                    base_url=self.config.ollama_base_url,
                )
            except Exception as e:
                logger.warning(f"LLM init error: {e}")
                self._llm = None
        return self._llm

    async def complete(self, prompt: str) -> str:
        """
        Send a single user message and return the reply text.

        Raises:
            LLMError: If the model cannot be created, times out or fails
        """
        llm = self._get_llm()
        if llm is None:
            raise LLMError(f"LLM unavailable: {self.config.model}")

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(llm.invoke, [HumanMessage(content=prompt)]),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise LLMError(f"LLM call timed out after {self.config.timeout_seconds}s") from e
        except Exception as e:
            raise LLMError(f"LLM call failed: {e}") from e

        content = response.content
        return content if isinstance(content, str) else str(content)
