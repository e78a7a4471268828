"""
Observability Module for the Document Chain

Provides:
- Structured logging with correlation IDs (run, stage, document)
- Stage event helpers used by the pipeline
"""

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    get_correlation_context,
    with_correlation,
    StructuredFormatter,
    HumanReadableFormatter,
    log_stage_start,
    log_stage_committed,
    log_stage_failed,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "get_correlation_context",
    "with_correlation",
    "StructuredFormatter",
    "HumanReadableFormatter",
    "log_stage_start",
    "log_stage_committed",
    "log_stage_failed",
]
