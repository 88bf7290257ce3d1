from __future__ import annotations

"""In-memory conversation history.

Chats live only in process memory and are lost on restart. There is no
eviction or expiry: a chat exists until it is deleted explicitly. The store is
not locked; it is meant to be touched from a single event loop, where two
requests for the same chat can still interleave around the upstream await.
"""

import logging
from typing import Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from chat.core.prompt import SYSTEM_PROMPT


logger = logging.getLogger(__name__)

MAX_TURNS = 20

Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


def trim_history(messages: Sequence[Message], max_turns: int = MAX_TURNS) -> List[Message]:
    """Keep the leading system message plus the last ``max_turns * 2`` others."""
    if max_turns < 0:
        raise ValueError("max_turns must be >= 0")

    system = [messages[0]] if messages and messages[0].role == "system" else []
    rest = [m for m in messages if m.role != "system"]

    max_messages = max_turns * 2
    trimmed_rest = rest[len(rest) - max_messages:] if len(rest) > max_messages else rest
    return system + trimmed_rest


class ChatStore:
    """Maps chat ids to their ordered message history."""

    def __init__(self, system_prompt: str = SYSTEM_PROMPT, max_turns: int = MAX_TURNS):
        if max_turns < 0:
            raise ValueError("max_turns must be >= 0")
        self.system_prompt = system_prompt
        self.max_turns = max_turns
        self._chats: Dict[str, List[Message]] = {}

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._chats

    def __len__(self) -> int:
        return len(self._chats)

    def get(self, chat_id: str) -> Optional[List[Message]]:
        return self._chats.get(chat_id)

    def get_or_create(self, chat_id: str) -> List[Message]:
        if chat_id not in self._chats:
            self._chats[chat_id] = [Message(role="system", content=self.system_prompt)]
            logger.info("Created chat %s", chat_id)
        return self._chats[chat_id]

    def append(self, chat_id: str, message: Message) -> List[Message]:
        """Append ``message`` and store the trimmed history, which is returned."""
        history = self.get_or_create(chat_id)
        trimmed = trim_history([*history, message], self.max_turns)
        self._chats[chat_id] = trimmed
        return trimmed

    def restore(
        self, chat_id: str, expected: List[Message], previous: Optional[List[Message]]
    ) -> bool:
        """Put ``previous`` back if ``expected`` is still the stored history object.

        A ``previous`` of None removes the chat. Returns False, changing nothing,
        when the chat was written to since ``expected`` was stored.
        """
        if self._chats.get(chat_id) is not expected:
            return False
        if previous is None:
            del self._chats[chat_id]
        else:
            self._chats[chat_id] = previous
        return True

    def discard(self, chat_id: str, message: Message) -> bool:
        """Remove this exact message object, if it is still stored."""
        history = self._chats.get(chat_id)
        if history is None:
            return False
        for idx, stored in enumerate(history):
            if stored is message:
                self._chats[chat_id] = history[:idx] + history[idx + 1:]
                return True
        return False

    def delete(self, chat_id: str) -> bool:
        if self._chats.pop(chat_id, None) is None:
            return False
        logger.info("Deleted chat %s", chat_id)
        return True

    def list_ids(self) -> List[str]:
        return list(self._chats.keys())

    def clear(self) -> None:
        self._chats.clear()
