"""
Calendar Domain

Busy-day ledger and the read-only calendar built on top of it.
"""

from .router import router

__all__ = ["router"]
