"""
Object storage for raw uploaded file bytes.

Two backends share the same contract: a Supabase Storage bucket for
deployments and a directory on local disk for development and tests.
Paths are `<session id>/<storage name>`; objects are never overwritten.
"""
import logging
import os
from pathlib import Path
from typing import Iterable, Mapping, Optional, Protocol

from supabase import Client, create_client

from codechat.config import (
    resolve_public_base_url,
    resolve_storage_backend,
    resolve_storage_bucket,
    resolve_upload_dir,
)
from codechat.errors import UpstreamStorageError

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def put(self, path: str, data: bytes, content_type: Optional[str] = None) -> None: ...

    def get(self, path: str) -> bytes: ...

    def delete(self, paths: Iterable[str]) -> None: ...

    def public_url(self, path: str) -> str: ...

    def check(self) -> bool: ...


class LocalBlobStore:
    def __init__(self, root: str, public_base_url: str = "/uploads"):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        if "\x00" in path:
            raise UpstreamStorageError(f"Invalid storage path: {path!r}")
        target = (self.root / path).resolve()
        if target == self.root or self.root not in target.parents:
            raise UpstreamStorageError(f"Invalid storage path: {path}")
        return target

    def put(self, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "xb") as buffer:
                buffer.write(data)
        except OSError as e:
            raise UpstreamStorageError(f"Failed to upload file: {e}") from e

    def get(self, path: str) -> bytes:
        try:
            return self._resolve(path).read_bytes()
        except OSError as e:
            raise UpstreamStorageError(f"Failed to download file: {e}") from e

    def delete(self, paths: Iterable[str]) -> None:
        for path in paths:
            try:
                self._resolve(path).unlink(missing_ok=True)
            except OSError as e:
                raise UpstreamStorageError(f"Failed to delete file: {e}") from e

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path}"

    def check(self) -> bool:
        return self.root.is_dir() and os.access(self.root, os.W_OK)


class SupabaseBlobStore:
    def __init__(self, client: Client, bucket: str):
        self.client = client
        self.bucket = bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def put(self, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        try:
            self._bucket().upload(
                path=path,
                file=data,
                file_options={
                    "content-type": content_type or "application/octet-stream",
                    "upsert": "false",
                },
            )
        except Exception as e:
            raise UpstreamStorageError(f"Failed to upload file: {e}") from e

    def get(self, path: str) -> bytes:
        try:
            return self._bucket().download(path)
        except Exception as e:
            raise UpstreamStorageError(f"Failed to download file: {e}") from e

    def delete(self, paths: Iterable[str]) -> None:
        paths = list(paths)
        if not paths:
            return
        try:
            self._bucket().remove(paths)
        except Exception as e:
            raise UpstreamStorageError(f"Failed to delete files: {e}") from e

    def public_url(self, path: str) -> str:
        try:
            return self._bucket().get_public_url(path)
        except Exception as e:
            raise UpstreamStorageError(f"Failed to build public URL: {e}") from e

    def check(self) -> bool:
        try:
            self.client.storage.get_bucket(self.bucket)
            return True
        except Exception as e:
            logger.error("Storage connection check failed: %s", e)
            return False


def create_blob_store(env: Mapping[str, str]) -> BlobStore:
    if resolve_storage_backend(env) == "supabase":
        logger.info("Using Supabase Storage bucket %s", resolve_storage_bucket(env))
        client = create_client(env["SUPABASE_URL"].strip(), env["SUPABASE_SERVICE_ROLE_KEY"].strip())
        return SupabaseBlobStore(client, resolve_storage_bucket(env))
    logger.info("Using local blob storage in %s", resolve_upload_dir(env))
    return LocalBlobStore(resolve_upload_dir(env), resolve_public_base_url(env))
