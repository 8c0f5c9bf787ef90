"""
Invitations Domain

One user proposes candidate dates to a friend; the friend accepts exactly one
(claiming that day for both) or declines. The sender may cancel while pending.
"""

from .router import router

__all__ = ["router"]
