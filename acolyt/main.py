# Entry point for the FastAPI app
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Tuple
import logging

from fastapi import FastAPI, HTTPException, Request

from . import config, security
from .chat_service import ChatService
from .completion import CompletionClient
from .conversation_log import ConversationLog
from .conversation_state import ConversationState
from .models.inbound_message import InboundMessage, clean_text
from .rag.chunk_store import KnowledgeStore
from .rag.embedder import EmbeddingClient, get_openai_client
from .rag.refresh import RefreshScheduler
from .rag.retriever import Retriever
from .utils.message_splitter import needs_splitting, split_message

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_components() -> Tuple[ChatService, Optional[RefreshScheduler]]:
    """Wire the store, clients, history and scheduler from configuration."""
    store = KnowledgeStore()
    count = store.reload()
    logger.info(f"[STARTUP] Knowledge store loaded with {count} chunks")

    # One HTTP client shared by both capabilities; built lazily when no key is set yet
    openai_client = get_openai_client() if config.OPENAI_API_KEY else None
    embedder = EmbeddingClient(client=openai_client)
    completion = CompletionClient(client=openai_client)

    log = None
    if config.CONVERSATION_LOG_DB_PATH:
        log = ConversationLog(config.CONVERSATION_LOG_DB_PATH)
        log.cleanup_old_messages()
        logger.info(f"[STARTUP] Persisting conversation history to {config.CONVERSATION_LOG_DB_PATH}")

    state = ConversationState(log=log)
    service = ChatService(store, Retriever(store, embedder), completion, state)
    scheduler = RefreshScheduler(store, embedder) if config.REFRESH_ENABLED else None
    return service, scheduler


def _reply_body(reply: str) -> Dict[str, Any]:
    parts = split_message(reply) if needs_splitting(reply) else [reply]
    return {"reply": reply, "parts": parts}


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        data = await request.json()
    except ValueError:
        body = await request.body()
        logger.error(f"[API] Could not parse request body ({len(body)} bytes)")
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return data


async def _authenticated_json(request: Request) -> Dict[str, Any]:
    """Check the passkey, then parse the body. A header passkey is checked before parsing."""
    if request.headers.get(security.PASSKEY_HEADER):
        security.validate_passkey(request)
        return await _read_json(request)

    try:
        data = await _read_json(request)
    except HTTPException:
        # An unparseable body carries no passkey either
        security.validate_passkey(request)
        raise
    security.validate_passkey(request, data)
    return data


def create_app(
    service: Optional[ChatService] = None,
    scheduler: Optional[RefreshScheduler] = None,
) -> FastAPI:
    """Build the app. Components are wired from config at startup unless injected."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        security.check_security_config()
        if app.state.service is None:
            app.state.service, app.state.scheduler = build_components()
        if app.state.scheduler is not None:
            app.state.scheduler.start()
        logger.info("[STARTUP] Initialization complete")
        try:
            yield
        finally:
            if app.state.scheduler is not None:
                await app.state.scheduler.stop()

    app = FastAPI(lifespan=lifespan)
    app.state.service = service
    app.state.scheduler = scheduler

    @app.get("/")
    def root():
        return {"status": "ok", "bot": "acolyt"}

    @app.post("/commands/ask")
    async def ask_command(request: Request):
        """Free-text question; returns the generated reply."""
        data = await _authenticated_json(request)

        user_id = data.get("user_id")
        message = data.get("message")
        if not user_id or not isinstance(message, str) or not message.strip():
            raise HTTPException(status_code=422, detail="user_id and message are required")

        reply = await app.state.service.answer(clean_text(str(user_id)), clean_text(message))
        return _reply_body(reply)

    @app.get("/commands/training-status")
    async def training_status_command(request: Request):
        """Store size and a short preview of the most recent notes."""
        security.validate_passkey(request)
        return app.state.service.training_status()

    @app.post("/events")
    async def message_event(request: Request):
        """Inbound chat message relayed from the gateway."""
        data = await _authenticated_json(request)

        message = InboundMessage.from_payload(data)
        if message is None:
            return {"status": "ignored"}

        result = await app.state.service.dispatch(message)
        body: Dict[str, Any] = {
            "status": result.status,
            "note_recorded": result.note_recorded,
            "actions": result.actions,
        }
        if result.reply is not None:
            body.update(_reply_body(result.reply))
        return body

    return app


app = create_app()
