"""
Upload handling and context assembly.

Files are processed one at a time. A failure on one file is recorded as a
`PartialFileFailure` in the returned `FileBatch` and the rest of the batch
carries on.
"""
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from langsmith import traceable

from codechat.blob_store import BlobStore
from codechat.config import ALLOWED_EXTENSIONS, MAX_FILE_SIZE_BYTES, MAX_FILES_PER_REQUEST
from codechat.errors import (
    FileTooLarge,
    PartialFileFailure,
    TooManyFiles,
    UnsupportedFileType,
    UpstreamStorageError,
)
from codechat.models import FileContent
from codechat.models_db import UploadedFile
from codechat.session_store import ChatStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class IncomingFile:
    """A file part read from the multipart request."""
    filename: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class FileBatch:
    files: List[FileContent] = field(default_factory=list)
    skipped: List[PartialFileFailure] = field(default_factory=list)


def file_extension(filename: str) -> str:
    """Everything from the last dot of the base name, so `.py` counts as Python."""
    name = os.path.basename(filename or "")
    dot = name.rfind(".")
    return name[dot:].lower() if dot >= 0 else ""


def validate_upload(filename: str, size: int) -> None:
    extension = file_extension(filename)
    if extension not in ALLOWED_EXTENSIONS:
        raise UnsupportedFileType(extension)
    if size > MAX_FILE_SIZE_BYTES:
        raise FileTooLarge(filename, MAX_FILE_SIZE_BYTES)


async def read_uploads(parts: List[UploadFile]) -> List[IncomingFile]:
    """
    Turn multipart parts into `IncomingFile`s without buffering rejected ones.

    Count, names and declared sizes are checked before any part is read, and
    each read stops one byte past the size limit.
    """
    if len(parts) > MAX_FILES_PER_REQUEST:
        raise TooManyFiles(len(parts), MAX_FILES_PER_REQUEST)
    for part in parts:
        validate_upload(part.filename or "", part.size or 0)

    uploads = []
    for part in parts:
        data = await part.read(MAX_FILE_SIZE_BYTES + 1)
        validate_upload(part.filename or "", len(data))
        uploads.append(IncomingFile(filename=part.filename or "", data=data, content_type=part.content_type))
    return uploads


async def fold_files(
    items: Iterable[T],
    step: Callable[[T], Awaitable[FileContent]],
    name_of: Callable[[T], str],
) -> FileBatch:
    batch = FileBatch()
    for item in items:
        try:
            batch.files.append(await step(item))
        except UpstreamStorageError as e:
            batch.skipped.append(PartialFileFailure(name_of(item), str(e)))
        except UnicodeDecodeError as e:
            batch.skipped.append(PartialFileFailure(name_of(item), f"not valid UTF-8 text ({e.reason})"))
    for failure in batch.skipped:
        logger.warning("Skipping file %s: %s", failure.filename, failure.reason)
    return batch


class FileService:
    def __init__(self, store: ChatStore, blobs: BlobStore):
        self.store = store
        self.blobs = blobs

    def upload_file(self, session_id: str, incoming: IncomingFile) -> UploadedFile:
        """Write the bytes to the blob store, then record the metadata row."""
        storage_name = f"{uuid.uuid4()}{file_extension(incoming.filename)}"
        storage_path = f"{session_id}/{storage_name}"

        self.blobs.put(storage_path, incoming.data, incoming.content_type)
        try:
            return self.store.record_file(
                session_id,
                filename=storage_name,
                original_name=incoming.filename,
                file_path=self.blobs.public_url(storage_path),
                file_size=incoming.size,
                mime_type=incoming.content_type,
                storage_path=storage_path,
            )
        except UpstreamStorageError:
            self.blobs.delete([storage_path])
            raise

    def read_file_content(self, uploaded: UploadedFile) -> FileContent:
        data = self.blobs.get(uploaded.storage_path)
        return FileContent(
            filename=uploaded.original_name,
            content=data.decode("utf-8"),
            path=uploaded.file_path,
        )

    @traceable(name="Upload Files", run_type="chain")
    async def process_uploaded_files(self, session_id: str, files: List[IncomingFile]) -> FileBatch:
        """Upload each file and read it back, keeping request order."""
        async def step(incoming: IncomingFile) -> FileContent:
            uploaded = await run_in_threadpool(self.upload_file, session_id, incoming)
            return await run_in_threadpool(self.read_file_content, uploaded)

        return await fold_files(files, step, lambda incoming: incoming.filename)

    @traceable(name="Load Session Files", run_type="retriever")
    async def get_session_file_contents(self, session_id: str) -> FileBatch:
        """Contents of previously stored files, most recent first."""
        stored = await run_in_threadpool(self.store.get_session_files, session_id)

        async def step(uploaded: UploadedFile) -> FileContent:
            return await run_in_threadpool(self.read_file_content, uploaded)

        return await fold_files(stored, step, lambda uploaded: uploaded.original_name)

    def delete_file(self, file_id: str) -> bool:
        # Blob first, then metadata; the two deletes are not atomic.
        uploaded = self.store.get_file(file_id)
        if uploaded is None:
            return False
        self.blobs.delete([uploaded.storage_path])
        self.store.delete_file_record(file_id)
        return True

    def clear_session(self, session_id: str) -> int:
        files = self.store.get_session_files(session_id)
        self.blobs.delete([f.storage_path for f in files])
        self.store.delete_session(session_id)
        return len(files)
