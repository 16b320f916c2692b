"""
Quests Module
=============

Domain: read access to authored quests

Services:
- QuestCatalog: Quest lookup, listing, availability and artefact usage
"""

from .catalog import QuestCatalog

__all__ = [
    "QuestCatalog",
]
