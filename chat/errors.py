from __future__ import annotations

from typing import Optional


class ChatError(Exception):
    """Base error carrying the HTTP status and the message safe to show callers."""

    status_code: int = 500
    public_message: str = "Server error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.public_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ChatValidationError(ChatError):
    status_code = 400
    public_message = "chatId is required"


class ChatNotFoundError(ChatError):
    status_code = 404
    public_message = "Chat not found"

    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        super().__init__()


class UpstreamError(ChatError):
    """The completion API failed. ``detail`` is for server logs only."""

    status_code = 500
    public_message = "Server error"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__()

    def __str__(self) -> str:
        return self.detail


class UpstreamConfigError(UpstreamError):
    pass
