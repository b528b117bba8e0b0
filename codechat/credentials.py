"""
Session access.

Holding a session identifier grants full read and write access to that
session's files and conversation. There is no revocation or rotation; this
is a known limitation, kept behind `SessionCredential` so a stronger scheme
can replace it without touching the chat flow.
"""
from dataclasses import dataclass

from codechat.errors import ValidationError


@dataclass(frozen=True)
class SessionCredential:
    session_id: str

    @classmethod
    def from_token(cls, token: str) -> "SessionCredential":
        token = (token or "").strip()
        if not token:
            raise ValidationError("Session ID is required")
        return cls(session_id=token)


@dataclass(frozen=True)
class ChatRequest:
    message: str
    api_key: str
    credential: SessionCredential
    use_existing_files: bool = False

    @classmethod
    def from_form(
        cls,
        message: str,
        api_key: str,
        session_id: str,
        use_existing_files: str = "false",
    ) -> "ChatRequest":
        if not (message or "").strip():
            raise ValidationError("Message is required")
        if not (api_key or "").strip():
            raise ValidationError("API key is required")
        return cls(
            message=message,
            api_key=api_key.strip(),
            credential=SessionCredential.from_token(session_id),
            use_existing_files=(use_existing_files or "").strip().lower() == "true",
        )
