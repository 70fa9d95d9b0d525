"""
Workflows composed from the store and clients.
"""
from .studio import StudioWorkflow, ensure_quota

__all__ = ["StudioWorkflow", "ensure_quota"]
