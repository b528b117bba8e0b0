import os
import sys
from datetime import datetime, timedelta

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from codechat.blob_store import LocalBlobStore
from codechat.database import Base
from codechat.errors import UpstreamModelError, UpstreamStorageError
import codechat.models_db  # noqa: F401  registers the tables


def make_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


class FakeClock:
    def __init__(self, start=datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        self.now = self.now + timedelta(seconds=1)
        return self.now


class FakeCompletionClient:
    """Yields canned chunks, optionally failing after `fail_after` of them."""

    def __init__(self, chunks, fail_after=None, on_chunk=None):
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.on_chunk = on_chunk
        self.api_key = None
        self.prompt = None
        self.history = None

    def factory(self, api_key):
        self.api_key = api_key
        return self

    async def stream(self, prompt, history=()):
        self.prompt = prompt
        self.history = list(history)
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index == self.fail_after:
                raise UpstreamModelError("Gemini API Error: quota exceeded")
            yield chunk
            if self.on_chunk:
                self.on_chunk(index)
        if self.fail_after is not None and self.fail_after >= len(self.chunks):
            raise UpstreamModelError("Gemini API Error: quota exceeded")


class FlakyBlobStore(LocalBlobStore):
    """Local store that fails writes of the listed payloads and reads of the listed paths."""

    def __init__(self, root, fail_put_for=(), fail_get_for=()):
        super().__init__(root)
        self.fail_put_for = set(fail_put_for)
        self.fail_get_for = set(fail_get_for)
        self.deleted = []

    def put(self, path, data, content_type=None):
        if data in self.fail_put_for:
            raise UpstreamStorageError("Failed to upload file: bucket unavailable")
        super().put(path, data, content_type)

    def get(self, path):
        if path in self.fail_get_for:
            raise UpstreamStorageError("Failed to download file: not found")
        return super().get(path)

    def delete(self, paths):
        paths = list(paths)
        self.deleted.extend(paths)
        super().delete(paths)
