"""Core module - store-neutral document chain.

This module contains the document and result models, configuration, logging
and the pipeline that creates the sales order, down payment invoice and
incoming payment. It is intentionally transport-agnostic.

Store-specific logic (Service Layer, sandbox) belongs in /connectors/.
"""

__version__ = "1.0.0"
