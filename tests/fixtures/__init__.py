"""Test fixture package for LinkVault.

Contains fixtures for:
- Content services wired to in-memory or on-disk stores
- FastAPI test applications and clients
"""

from .content_store import FakeClock

__all__ = ["FakeClock"]
