"""Exception hierarchy for the ingestion pipeline.

    DocPipeError
    +-- InputRejected          (unsupported type/extension, oversized or empty upload)
    +-- ExtractionError        (no strategy produced enough text)
    +-- EmbeddingServiceError  (service unreachable, model missing, bad response)
    +-- PersistenceError       (vector index upload failed; never fatal to a request)

The API layer renders every subclass as a structured JSON error using
``status_code``, ``code`` and ``title``.
"""
from typing import Optional


class DocPipeError(Exception):
    status_code: int = 500
    code: str = "PROCESSING_ERROR"
    title: str = "Failed to process file"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)


class InputRejected(DocPipeError):
    status_code = 400
    code = "INPUT_REJECTED"
    title = "File rejected"

    _STATUS_BY_CODE = {
        "EMPTY_FILE": 400,
        "TOO_MANY_FILES": 400,
        "FILE_TOO_LARGE": 413,
        "UNSUPPORTED_TYPE": 415,
    }

    def __init__(self, message: str, code: str = "INPUT_REJECTED"):
        super().__init__(message, code=code)
        self.status_code = self._STATUS_BY_CODE.get(code, 400)


class ExtractionError(DocPipeError):
    status_code = 422
    code = "EXTRACTION_FAILED"
    title = "Failed to extract text"


class EmbeddingServiceError(DocPipeError):
    status_code = 502
    code = "EMBEDDING_SERVICE_ERROR"
    title = "Embedding service error"


class PersistenceError(DocPipeError):
    status_code = 502
    code = "PERSISTENCE_ERROR"
    title = "Vector index upload failed"

    def __init__(self, message: str, persisted: int = 0):
        super().__init__(message)
        self.persisted = persisted
