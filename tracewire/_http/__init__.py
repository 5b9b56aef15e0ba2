"""
HTTP Transport Module

Sync HTTP transport for the batch ingestion API.
"""

from .transport import HttpTransport

__all__ = ["HttpTransport"]
