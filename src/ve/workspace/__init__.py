"""
Workspace module for valuation record storage.

Provides ValuationStore for persisting draft and completed valuations.
"""

from ve.workspace.store import ValuationStore

__all__ = ["ValuationStore"]
