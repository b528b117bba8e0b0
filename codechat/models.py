from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict

Role = Literal["user", "assistant"]


class FileContent(BaseModel):
    filename: str
    content: str
    path: str


class UploadedFileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    filename: str
    original_name: str
    file_path: str
    file_size: int
    mime_type: Optional[str] = None
    storage_path: str
    uploaded_at: datetime


class ConversationTurn(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: str
    role: Role
    content: str
    created_at: datetime


class HistoryResponse(BaseModel):
    success: bool = True
    history: List[ConversationTurn]


class FilesResponse(BaseModel):
    success: bool = True
    files: List[UploadedFileOut]
    count: int


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class HealthResponse(BaseModel):
    status: str
    message: str
    database: Literal["connected", "disconnected"]
    storage: Literal["connected", "disconnected"]
    timestamp: str
