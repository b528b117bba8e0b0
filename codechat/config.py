import logging
import sys
from typing import Literal, Mapping

StorageBackend = Literal["supabase", "local"]

# Generation parameters are fixed for every request.
TEMPERATURE = 0.7
TOP_P = 0.95
TOP_K = 40
MAX_OUTPUT_TOKENS = 8192

MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024
MAX_FILES_PER_REQUEST = 50
ALLOWED_EXTENSIONS = frozenset([
    ".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".cpp", ".c", ".h",
    ".css", ".html", ".json", ".xml", ".md", ".txt", ".yml", ".yaml",
    ".go", ".rs", ".php", ".rb", ".swift", ".kt", ".sql", ".sh",
])

DEFAULT_DATABASE_URL = "sqlite:///./codechat.db"
DEFAULT_MODEL = "gemini-2.0-flash"


def _get(env: Mapping[str, str], key: str) -> str:
    return (env.get(key) or "").strip()


def resolve_database_url(env: Mapping[str, str]) -> str:
    return _get(env, "DATABASE_URL") or DEFAULT_DATABASE_URL


def resolve_storage_backend(env: Mapping[str, str]) -> StorageBackend:
    """Pick the blob store; Supabase only when it is fully configured."""
    raw_value = _get(env, "STORAGE_BACKEND").lower()
    if raw_value == "local":
        return "local"
    if _get(env, "SUPABASE_URL") and _get(env, "SUPABASE_SERVICE_ROLE_KEY"):
        return "supabase"
    return "local"


def resolve_storage_bucket(env: Mapping[str, str]) -> str:
    return _get(env, "STORAGE_BUCKET") or "code-files"


def resolve_upload_dir(env: Mapping[str, str]) -> str:
    return _get(env, "UPLOAD_DIR") or "uploads"


def resolve_public_base_url(env: Mapping[str, str]) -> str:
    return (_get(env, "PUBLIC_BASE_URL") or "/uploads").rstrip("/")


def resolve_model_name(env: Mapping[str, str]) -> str:
    """Resolve the Gemini chat model name without the `models/` prefix."""
    raw_value = _get(env, "GEMINI_MODEL")
    if not raw_value:
        return DEFAULT_MODEL
    if raw_value.startswith("models/"):
        raw_value = raw_value[len("models/"):]
    return raw_value or DEFAULT_MODEL


def resolve_frontend_url(env: Mapping[str, str]) -> str:
    return _get(env, "FRONTEND_URL") or "http://localhost:3000"


def resolve_port(env: Mapping[str, str]) -> int:
    raw_value = _get(env, "PORT")
    try:
        value = int(raw_value)
    except ValueError:
        return 5000
    return value if value > 0 else 5000


def resolve_log_level(env: Mapping[str, str]) -> int:
    raw_value = _get(env, "LOG_LEVEL").upper()
    level = logging.getLevelName(raw_value) if raw_value else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging with a timestamped console format."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    # Reduce noise from verbose third-party libraries
    for name in ("httpx", "httpcore", "urllib3", "multipart"):
        logging.getLogger(name).setLevel(logging.WARNING)
