"""
Collection Module
=================

Domain: a user's collected artefacts and completed quests

Services:
- UserCollectionService: Grow-only full-replace collection updates
"""

from .service import UserCollectionService

__all__ = [
    "UserCollectionService",
]
