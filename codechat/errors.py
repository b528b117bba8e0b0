"""
Error kinds raised across the chat pipeline.

Every error carries the HTTP status used when it surfaces before the event
stream opens; after that point they are reported as a terminal `error` event.
"""


class CodeChatError(Exception):
    status_code = 500


class ValidationError(CodeChatError):
    status_code = 400


class UnsupportedFileType(ValidationError):
    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(f"File type {extension or '(none)'} is not supported")


class FileTooLarge(ValidationError):
    status_code = 413

    def __init__(self, filename: str, limit: int):
        self.filename = filename
        super().__init__(f"File {filename} exceeds the {limit // (1024 * 1024)}MB limit")


class TooManyFiles(ValidationError):
    def __init__(self, count: int, limit: int):
        super().__init__(f"Too many files: {count} (maximum {limit} per request)")


class UpstreamStorageError(CodeChatError):
    status_code = 500


class UpstreamModelError(CodeChatError):
    status_code = 502


class PartialFileFailure(CodeChatError):
    """One file of a batch could not be uploaded or read; the batch goes on."""

    def __init__(self, filename: str, reason: str):
        self.filename = filename
        self.reason = reason
        super().__init__(f"{filename}: {reason}")
