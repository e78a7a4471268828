"""Error taxonomy for the document chain.

Only ConnectError is allowed to escape the pipeline orchestrator. Everything
else is either captured as a failed StageResult (SubmissionError and any other
stage fault) or suppressed during cleanup (ResourceReleaseError).
"""

from typing import Optional


class DocumentChainError(Exception):
    """Base exception for the document chain."""
    pass


class ConnectError(DocumentChainError):
    """The session to the document store could not be established."""
    def __init__(self, message: str, error_code: int = 0):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class SubmissionError(DocumentChainError):
    """The document store rejected a document.

    `message` is the store's diagnostic text, kept verbatim.
    """
    def __init__(self, stage: str, message: str, error_code: int = 0):
        super().__init__(message)
        self.stage = stage
        self.message = message
        self.error_code = error_code


class ResourceReleaseError(DocumentChainError):
    """A document handle could not be released (unknown or already released)."""
    pass


class LineCursorError(DocumentChainError):
    """A line was configured without first being appended and selected."""
    def __init__(self, message: str, current: Optional[int] = None, count: Optional[int] = None):
        super().__init__(message)
        self.current = current
        self.count = count
