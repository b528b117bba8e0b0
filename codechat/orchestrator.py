"""
Chat orchestration: drives one chat request from validation to the final
transcript and reports progress as a stream of event dicts.

States run `validating -> uploading -> assembling -> generating -> persisting
-> done`; any failure moves to `failed`. Each request ends with exactly one
terminal event, `done` or `error`, unless the client went away first.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, AsyncGenerator, AsyncIterator, Callable, Dict, List, Optional, Protocol, Sequence

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session as DBSession

from codechat.blob_store import BlobStore
from codechat.credentials import ChatRequest, SessionCredential
from codechat.file_service import FileBatch, FileService, IncomingFile
from codechat.gemini import GeminiCompletionClient
from codechat.prompt_builder import build_context_prompt
from codechat.session_store import ChatStore

logger = logging.getLogger(__name__)


class ChatState(str, Enum):
    VALIDATING = "validating"
    UPLOADING = "uploading"
    ASSEMBLING = "assembling"
    GENERATING = "generating"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class CompletionClient(Protocol):
    def stream(self, prompt: str, history: Sequence[Dict[str, str]] = ()) -> AsyncGenerator[str, None]: ...


def status_event(message: str) -> Dict[str, Any]:
    return {"type": "status", "message": message}


class ChatOrchestrator:
    def __init__(
        self,
        session_factory: Callable[[], DBSession],
        blob_store: BlobStore,
        completion_factory: Callable[[str], CompletionClient] = GeminiCompletionClient,
    ):
        self.session_factory = session_factory
        self.blob_store = blob_store
        self.completion_factory = completion_factory

    async def ensure_session(self, credential: SessionCredential) -> None:
        def run():
            with self.session_factory() as db:
                ChatStore(db).ensure_session(credential.session_id)

        await run_in_threadpool(run)

    async def stream_chat(
        self,
        request: ChatRequest,
        uploads: Optional[List[IncomingFile]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        uploads = uploads or []
        session_id = request.credential.session_id
        state = ChatState.VALIDATING

        def advance(new_state: ChatState) -> None:
            nonlocal state
            logger.debug("Chat %s: %s -> %s", session_id, state.value, new_state.value)
            state = new_state

        with self.session_factory() as db:
            store = ChatStore(db)
            files = FileService(store, self.blob_store)
            try:
                yield status_event("Processing your request...")

                batch = FileBatch()
                if uploads:
                    advance(ChatState.UPLOADING)
                    yield status_event(f"Uploading {len(uploads)} file(s) to storage...")
                    batch = await files.process_uploaded_files(session_id, uploads)
                    yield status_event(f"Successfully uploaded {len(batch.files)} file(s)")

                advance(ChatState.ASSEMBLING)
                if request.use_existing_files and not uploads:
                    yield status_event("Loading previously uploaded files...")
                    batch = await files.get_session_file_contents(session_id)
                    yield status_event(f"Loaded {len(batch.files)} file(s) from your session")

                turns = await run_in_threadpool(store.get_conversation_history, session_id)
                history = [{"role": t.role, "content": t.content} for t in turns]
                prompt = build_context_prompt(request.message, batch.files)

                advance(ChatState.GENERATING)
                await run_in_threadpool(store.save_message, session_id, "user", request.message)
                yield status_event("Analyzing code and generating response...")

                client = self.completion_factory(request.api_key)
                full_response = ""
                chunks = client.stream(prompt, history)
                try:
                    async for chunk in chunks:
                        if cancel_event is not None and cancel_event.is_set():
                            logger.info("Chat %s cancelled during generation", session_id)
                            return
                        full_response += chunk
                        yield {"type": "chunk", "content": chunk}
                finally:
                    await chunks.aclose()

                advance(ChatState.PERSISTING)
                await run_in_threadpool(store.save_message, session_id, "assistant", full_response)

                advance(ChatState.DONE)
                yield {"type": "done", "fullResponse": full_response}
            except asyncio.CancelledError:
                logger.info("Chat %s: client disconnected in state %s", session_id, state.value)
                raise
            except Exception as e:
                failed_in = state
                advance(ChatState.FAILED)
                logger.exception("Chat endpoint error in state %s", failed_in.value)
                yield {"type": "error", "message": str(e) or "An error occurred"}
