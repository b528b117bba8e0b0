import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

# Load env vars before importing app modules that use them
load_dotenv()

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session as DBSession

from codechat.blob_store import BlobStore, create_blob_store
from codechat.config import configure_logging, resolve_frontend_url, resolve_log_level, resolve_port
from codechat.credentials import ChatRequest, SessionCredential
from codechat.database import Base, SessionLocal, check_connection, engine, get_db
from codechat.errors import CodeChatError
from codechat.file_service import FileService, read_uploads
from codechat.models import (
    ConversationTurn,
    FilesResponse,
    HealthResponse,
    HistoryResponse,
    MessageResponse,
    UploadedFileOut,
)
from codechat.orchestrator import ChatOrchestrator
from codechat.session_store import ChatStore
from codechat.sse import sse_stream, watch_disconnect

configure_logging(resolve_log_level(os.environ))
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    return create_blob_store(os.environ)


def get_chat_store(db: DBSession = Depends(get_db)) -> ChatStore:
    return ChatStore(db)


def get_file_service(
    store: ChatStore = Depends(get_chat_store),
    blob_store: BlobStore = Depends(get_blob_store),
) -> FileService:
    return FileService(store, blob_store)


def get_chat_orchestrator(blob_store: BlobStore = Depends(get_blob_store)) -> ChatOrchestrator:
    return ChatOrchestrator(session_factory=SessionLocal, blob_store=blob_store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    if check_connection():
        logger.info("Database connected successfully")
    else:
        logger.error("Database connection failed - check DATABASE_URL")
    yield


app = FastAPI(title="Code Chat Assistant", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[resolve_frontend_url(os.environ)],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CodeChatError)
async def codechat_error_handler(request: Request, exc: CodeChatError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc)})


@app.post("/chat/message")
async def chat_message(
    request: Request,
    message: str = Form(""),
    apiKey: str = Form(""),
    sessionId: str = Form(""),
    useExistingFiles: str = Form("false"),
    files: Optional[List[UploadFile]] = File(None),
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
):
    chat_request = ChatRequest.from_form(message, apiKey, sessionId, useExistingFiles)
    uploads = await read_uploads(files or [])

    await orchestrator.ensure_session(chat_request.credential)

    async def event_generator():
        cancel_event = asyncio.Event()
        watcher = asyncio.create_task(watch_disconnect(request, cancel_event))
        try:
            async for line in sse_stream(orchestrator.stream_chat(chat_request, uploads, cancel_event)):
                yield line
        finally:
            watcher.cancel()

    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(event_generator(), media_type="text/event-stream", headers=headers)


@app.get("/chat/history/{session_id}", response_model=HistoryResponse)
def get_history(session_id: str, store: ChatStore = Depends(get_chat_store)):
    credential = SessionCredential.from_token(session_id)
    turns = store.get_conversation_history(credential.session_id)
    return HistoryResponse(history=[ConversationTurn.model_validate(t) for t in turns])


@app.delete("/chat/session/{session_id}", response_model=MessageResponse)
def clear_session(session_id: str, file_service: FileService = Depends(get_file_service)):
    credential = SessionCredential.from_token(session_id)
    removed = file_service.clear_session(credential.session_id)
    return MessageResponse(message=f"Session cleared ({removed} file(s) removed)")


@app.get("/files/{session_id}", response_model=FilesResponse)
def list_files(session_id: str, store: ChatStore = Depends(get_chat_store)):
    credential = SessionCredential.from_token(session_id)
    files = store.get_session_files(credential.session_id)
    return FilesResponse(files=[UploadedFileOut.model_validate(f) for f in files], count=len(files))


@app.delete("/files/{file_id}", response_model=MessageResponse)
def delete_file(file_id: str, file_service: FileService = Depends(get_file_service)):
    if not file_service.delete_file(file_id):
        logger.info("Delete requested for unknown file %s", file_id)
    return MessageResponse(message="File deleted successfully")


@app.get("/health", response_model=HealthResponse)
def health(store: ChatStore = Depends(get_chat_store), blob_store: BlobStore = Depends(get_blob_store)):
    return HealthResponse(
        status="ok",
        message="Server is running",
        database="connected" if check_connection(store.db.get_bind()) else "disconnected",
        storage="connected" if blob_store.check() else "disconnected",
        timestamp=datetime.utcnow().isoformat() + "Z",
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=resolve_port(os.environ), reload=True)
