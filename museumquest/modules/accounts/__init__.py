"""
Accounts Module
===============

Domain: account deletion

Services:
- AccountDeletionService: Delete by email with leaderboard cascade
"""

from .service import AccountDeletionResult, AccountDeletionService

__all__ = [
    "AccountDeletionResult",
    "AccountDeletionService",
]
