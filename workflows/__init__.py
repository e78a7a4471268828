"""Workflow definitions module."""

from workflows.document_chain_workflow import DocumentChainWorkflow, ChainStatus

__all__ = ["DocumentChainWorkflow", "ChainStatus"]
