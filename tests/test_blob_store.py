import os
import sys
import tempfile
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from codechat.blob_store import LocalBlobStore, SupabaseBlobStore, create_blob_store
from codechat.errors import UpstreamStorageError


class TestLocalBlobStore(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.store = LocalBlobStore(self.tmp.name, public_base_url="http://localhost:5000/uploads/")

    def tearDown(self):
        self.tmp.cleanup()

    def test_round_trip_is_byte_identical(self):
        data = "def foo():\n    return 'ünïcode'\n".encode("utf-8")
        self.store.put("s1/abc.py", data, "text/x-python")
        self.assertEqual(self.store.get("s1/abc.py"), data)

    def test_put_does_not_overwrite(self):
        self.store.put("s1/abc.py", b"one")
        with self.assertRaises(UpstreamStorageError):
            self.store.put("s1/abc.py", b"two")
        self.assertEqual(self.store.get("s1/abc.py"), b"one")

    def test_get_missing_raises_storage_error(self):
        with self.assertRaises(UpstreamStorageError):
            self.store.get("s1/missing.py")

    def test_path_traversal_rejected(self):
        with self.assertRaises(UpstreamStorageError):
            self.store.put("../escape.py", b"x")

    def test_delete_is_tolerant_of_missing_objects(self):
        self.store.put("s1/a.py", b"a")
        self.store.delete(["s1/a.py", "s1/never.py"])
        with self.assertRaises(UpstreamStorageError):
            self.store.get("s1/a.py")

    def test_public_url(self):
        self.assertEqual(self.store.public_url("s1/a.py"), "http://localhost:5000/uploads/s1/a.py")

    def test_check(self):
        self.assertTrue(self.store.check())

    def test_null_byte_path_rejected(self):
        with self.assertRaises(UpstreamStorageError):
            self.store.put("bad\x00id/a.py", b"x")

    def test_factory_defaults_to_local(self):
        store = create_blob_store({"UPLOAD_DIR": self.tmp.name})
        self.assertIsInstance(store, LocalBlobStore)


class FakeBucket:
    def get_public_url(self, path):
        raise RuntimeError("bucket misconfigured")


class FakeStorage:
    def from_(self, bucket):
        return FakeBucket()


class FakeSupabaseClient:
    storage = FakeStorage()


class TestSupabaseBlobStore(unittest.TestCase):
    def test_public_url_failure_is_a_storage_error(self):
        store = SupabaseBlobStore(FakeSupabaseClient(), "code-files")

        with self.assertRaises(UpstreamStorageError) as ctx:
            store.public_url("s1/a.py")

        self.assertIn("bucket misconfigured", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
