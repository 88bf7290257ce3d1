from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field, StrictStr

from chat.core.memory import ChatStore, Message
from chat.errors import ChatError, ChatNotFoundError, ChatValidationError, UpstreamError
from chat.upstream import UpstreamClient
from config.settings import Settings, get_settings


logger = logging.getLogger("chat_relay")


class ChatRequest(BaseModel):
    chatId: StrictStr = Field(..., min_length=1, description="Client-chosen conversation identifier")
    message: StrictStr = Field(..., min_length=1, description="User's latest message")


class ChatReply(BaseModel):
    reply: str


def get_store(request: Request) -> ChatStore:
    return request.app.state.store


def get_upstream(request: Request) -> UpstreamClient:
    return request.app.state.upstream


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


router = APIRouter()


@router.get("/healthz", response_class=PlainTextResponse)
def healthz() -> str:
    return "ok"


@router.get("/api/chats")
def list_chats(store: ChatStore = Depends(get_store)) -> Dict[str, List[str]]:
    return {"chatIds": store.list_ids()}


@router.delete("/api/chat")
@router.delete("/api/chat/")
def delete_chat_without_id() -> Dict[str, Any]:
    raise ChatValidationError()


@router.delete("/api/chat/{chat_id}")
def delete_chat(chat_id: str, store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    if not chat_id:
        raise ChatValidationError()
    if not store.delete(chat_id):
        raise ChatNotFoundError(chat_id)
    return {"ok": True}


@router.post("/api/chat", response_model=ChatReply)
async def post_chat(
    req: ChatRequest,
    store: ChatStore = Depends(get_store),
    upstream: UpstreamClient = Depends(get_upstream),
    settings: Settings = Depends(get_app_settings),
) -> ChatReply:
    previous = store.get(req.chatId)
    created = previous is None
    user_message = Message(role="user", content=req.message)
    history = store.append(req.chatId, user_message)
    logger.info(
        "Incoming chat: chat_id=%s new=%s history_len=%s message_len=%s",
        req.chatId,
        created,
        len(history),
        len(req.message),
    )

    try:
        reply = await upstream.complete(history)
    except Exception:
        if settings.rollback_on_failure:
            _rollback(store, req.chatId, user_message, history, previous)
        raise

    store.append(req.chatId, Message(role="assistant", content=reply))
    logger.info("Model responded for chat_id=%s: %s chars", req.chatId, len(reply))
    return ChatReply(reply=reply)


def _rollback(
    store: ChatStore,
    chat_id: str,
    user_message: Message,
    appended: List[Message],
    previous: Optional[List[Message]],
) -> None:
    # Untouched since our append: the snapshot also brings back anything trimming evicted.
    if store.restore(chat_id, appended, previous):
        logger.info("Rolled back user message for chat_id=%s", chat_id)
        return

    created = previous is None
    store.discard(chat_id, user_message)
    history = store.get(chat_id)
    # Another request may have written to a fresh chat meanwhile; only drop it if untouched.
    if created and history is not None and len(history) == 1:
        store.delete(chat_id)
    logger.info("Rolled back user message for chat_id=%s", chat_id)


def _validation_error_message(exc: RequestValidationError) -> str:
    fields = {str(part) for err in exc.errors() for part in err.get("loc", ())}
    if "message" in fields and "chatId" not in fields:
        return "message is required"
    return "chatId is required"


async def handle_chat_error(request: Request, exc: ChatError) -> JSONResponse:
    if isinstance(exc, UpstreamError):
        logger.error("Chat error: %s", exc.detail, exc_info=exc.__cause__ or exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": _validation_error_message(exc)})


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Chat processing failed: %s", exc)
    return JSONResponse(status_code=500, content={"error": "Server error"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = app.state
    logger.info("Starting chat relay (env=%s)", state.settings.app_env)
    if state.upstream is None:
        # Fails here, at startup, when the credential is missing.
        state.upstream = UpstreamClient(state.settings)
    yield
    logger.info("Shutting down chat relay, dropping %s chats", len(state.store))
    state.store.clear()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ChatStore] = None,
    upstream: Optional[UpstreamClient] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level, format="[%(asctime)s] %(levelname)s - %(message)s"
    )

    app = FastAPI(title="Chat Relay", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store if store is not None else ChatStore(settings.system_prompt, settings.max_turns)
    app.state.upstream = upstream

    # CORS: allow local frontend during development
    if settings.is_dev:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(ChatError, handle_chat_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(router)

    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
    else:
        logger.warning("Static directory %s not found, frontend disabled", settings.static_dir)

    return app


app = create_app()


def main() -> None:
    settings = get_settings()
    logger.info("Server listening on %s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
