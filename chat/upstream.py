from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from chat.core.memory import Message
from chat.errors import UpstreamConfigError, UpstreamError
from config.settings import Settings, get_settings


logger = logging.getLogger(__name__)


def to_lc_messages(history: Sequence[Message]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for item in history:
        if item.role == "system":
            messages.append(SystemMessage(content=item.content))
        elif item.role == "assistant":
            messages.append(AIMessage(content=item.content))
        else:
            messages.append(HumanMessage(content=item.content))
    return messages


def _reply_text(content: Any) -> str:
    # Gemini may answer with a list of content parts instead of a plain string.
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts).strip()
    return ""


class UpstreamClient:
    """Completion client shared by every request for the process lifetime."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        if not self.settings.google_api_key:
            raise UpstreamConfigError(
                "GOOGLE_API_KEY not set. Please configure it in environment or .env"
            )
        self._llm: Optional[ChatGoogleGenerativeAI] = None

    @property
    def llm(self) -> ChatGoogleGenerativeAI:
        if self._llm is None:
            self._llm = ChatGoogleGenerativeAI(
                model=self.settings.gemini_model,
                google_api_key=self.settings.google_api_key,
                temperature=self.settings.temperature,
                top_p=self.settings.top_p,
                timeout=self.settings.upstream_timeout,
                max_retries=0,
            )
            logger.info("Upstream client initialized: model=%s", self.settings.gemini_model)
        return self._llm

    async def complete(self, messages: Sequence[Message]) -> str:
        """Send the whole history and return the reply text.

        An empty reply is replaced with the configured fallback text. Any
        failure of the call itself is raised as ``UpstreamError``.
        """
        try:
            result = await self.llm.ainvoke(to_lc_messages(messages))
        except Exception as exc:
            raise UpstreamError(f"Completion call failed: {exc}") from exc

        reply = _reply_text(getattr(result, "content", None))
        if not reply:
            logger.warning("Upstream returned empty content, using fallback reply")
            return self.settings.fallback_reply
        return reply
