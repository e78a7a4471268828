"""Sandbox Connector Package.

In-memory DocumentStore used for dry runs and tests.
"""

from connectors.sandbox.sandbox_store import SandboxStore

__all__ = ["SandboxStore"]
