"""Stage and pipeline result models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, model_validator

from core.models.documents import CommittedInvoice, CommittedOrder


class ChainStage(str, Enum):
    """Stages of the document chain, in execution order."""
    SALES_ORDER = "SALES_ORDER"
    DOWN_PAYMENT_INVOICE = "DOWN_PAYMENT_INVOICE"
    INCOMING_PAYMENT = "INCOMING_PAYMENT"

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS = {
    ChainStage.SALES_ORDER: "Sales Order",
    ChainStage.DOWN_PAYMENT_INVOICE: "Down Payment Invoice",
    ChainStage.INCOMING_PAYMENT: "Incoming Payment",
}


class PipelineState(str, Enum):
    """Orchestrator states."""
    DISCONNECTED = "DISCONNECTED"
    CONNECTED = "CONNECTED"
    ORDER_PENDING = "ORDER_PENDING"
    ORDER_COMMITTED = "ORDER_COMMITTED"
    ORDER_FAILED = "ORDER_FAILED"
    INVOICE_PENDING = "INVOICE_PENDING"
    INVOICE_COMMITTED = "INVOICE_COMMITTED"
    INVOICE_FAILED = "INVOICE_FAILED"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAYMENT_COMMITTED = "PAYMENT_COMMITTED"
    PAYMENT_FAILED = "PAYMENT_FAILED"


class StageResult(BaseModel):
    """Outcome of one stage.

    document_entry is present iff the stage succeeded; message is present iff
    it failed (and is the store's diagnostic, verbatim, for rejections).
    """
    model_config = ConfigDict(frozen=True)

    stage: ChainStage
    succeeded: bool
    document_entry: Optional[int] = None
    message: Optional[str] = None
    error_code: Optional[int] = None

    @model_validator(mode="after")
    def _check_outcome(self):
        if self.succeeded:
            if self.document_entry is None:
                raise ValueError("a succeeded stage must carry a document entry")
            if self.message is not None:
                raise ValueError("a succeeded stage carries no message")
        else:
            if self.message is None:
                raise ValueError("a failed stage must carry a message")
            if self.document_entry is not None:
                raise ValueError("a failed stage carries no document entry")
        return self


class OrderStageResult(StageResult):
    order: Optional[CommittedOrder] = None


class InvoiceStageResult(StageResult):
    invoice: Optional[CommittedInvoice] = None


class PipelineResult(BaseModel):
    """Ordered record of the stages attempted in one run (1 to 3 entries)."""
    model_config = ConfigDict(frozen=True)

    run_id: str
    final_state: PipelineState
    stages: List[SerializeAsAny[StageResult]] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return len(self.stages) == len(ChainStage) and all(s.succeeded for s in self.stages)

    @property
    def failed_stage(self) -> Optional[StageResult]:
        for stage in self.stages:
            if not stage.succeeded:
                return stage
        return None

    @property
    def committed_stages(self) -> List[StageResult]:
        return [s for s in self.stages if s.succeeded]

    def stage(self, stage: ChainStage) -> Optional[StageResult]:
        for result in self.stages:
            if result.stage == stage:
                return result
        return None

    def describe(self) -> str:
        """One-line outcome naming what was committed and what failed."""
        committed = [s.stage.label for s in self.committed_stages]
        failed = self.failed_stage

        if failed is None:
            parts = [f"{s.stage.label} {s.document_entry}" for s in self.committed_stages]
            if not parts:
                return "No documents were added"
            return f"{_join(parts)} added successfully"

        if not committed:
            return f"{failed.stage.label} could not be added: {failed.message}"

        verb = "was" if len(committed) == 1 else "were"
        return (
            f"{' + '.join(committed)} {verb} added successfully "
            f"but the {failed.stage.label} had an issue: {failed.message}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = self.model_dump(mode="json")
        data["succeeded"] = self.succeeded
        data["summary"] = self.describe()
        return data


def _join(parts: List[str]) -> str:
    if len(parts) == 1:
        return parts[0]
    return ", ".join(parts[:-1]) + " and " + parts[-1]
