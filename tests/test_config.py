import logging
import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from codechat.config import (
    resolve_database_url,
    resolve_log_level,
    resolve_model_name,
    resolve_port,
    resolve_public_base_url,
    resolve_storage_backend,
    resolve_storage_bucket,
)


class TestConfig(unittest.TestCase):
    def test_default_database_url_when_unset(self):
        self.assertEqual(resolve_database_url({}), "sqlite:///./codechat.db")

    def test_database_url_from_env(self):
        env = {"DATABASE_URL": " postgresql://db/chat "}
        self.assertEqual(resolve_database_url(env), "postgresql://db/chat")

    def test_storage_is_local_without_supabase_credentials(self):
        self.assertEqual(resolve_storage_backend({}), "local")
        self.assertEqual(resolve_storage_backend({"SUPABASE_URL": "https://x.supabase.co"}), "local")

    def test_storage_is_supabase_when_configured(self):
        env = {"SUPABASE_URL": "https://x.supabase.co", "SUPABASE_SERVICE_ROLE_KEY": "key"}
        self.assertEqual(resolve_storage_backend(env), "supabase")

    def test_storage_local_override_wins(self):
        env = {
            "STORAGE_BACKEND": "LOCAL",
            "SUPABASE_URL": "https://x.supabase.co",
            "SUPABASE_SERVICE_ROLE_KEY": "key",
        }
        self.assertEqual(resolve_storage_backend(env), "local")

    def test_supabase_requested_but_unconfigured_falls_back(self):
        self.assertEqual(resolve_storage_backend({"STORAGE_BACKEND": "supabase"}), "local")

    def test_default_bucket(self):
        self.assertEqual(resolve_storage_bucket({}), "code-files")

    def test_public_base_url_trailing_slash_removed(self):
        self.assertEqual(resolve_public_base_url({"PUBLIC_BASE_URL": "http://cdn/files/"}), "http://cdn/files")

    def test_default_model_when_unset(self):
        self.assertEqual(resolve_model_name({}), "gemini-2.0-flash")

    def test_model_prefix_stripped(self):
        self.assertEqual(resolve_model_name({"GEMINI_MODEL": "models/gemini-1.5-pro"}), "gemini-1.5-pro")

    def test_blank_model_falls_back(self):
        self.assertEqual(resolve_model_name({"GEMINI_MODEL": "   "}), "gemini-2.0-flash")

    def test_port_parse_and_fallback(self):
        self.assertEqual(resolve_port({"PORT": "8080"}), 8080)
        self.assertEqual(resolve_port({"PORT": "abc"}), 5000)
        self.assertEqual(resolve_port({"PORT": "-1"}), 5000)

    def test_log_level(self):
        self.assertEqual(resolve_log_level({}), logging.INFO)
        self.assertEqual(resolve_log_level({"LOG_LEVEL": "debug"}), logging.DEBUG)
        self.assertEqual(resolve_log_level({"LOG_LEVEL": "chatty"}), logging.INFO)


if __name__ == "__main__":
    unittest.main()
