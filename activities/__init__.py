"""Activity definitions module."""

from activities.document_chain import (
    post_document_chain,
    DocumentChainInput,
    TASK_QUEUE_ERP,
)

__all__ = [
    "post_document_chain",
    "DocumentChainInput",
    "TASK_QUEUE_ERP",
]
