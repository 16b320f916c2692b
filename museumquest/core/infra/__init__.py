"""
Infrastructure orchestration.

- ApplicationContext: dependency-ordered startup, per-user sessions and
  reverse-order shutdown
"""

from museumquest.core.infra.application_context import ApplicationContext

__all__ = [
    "ApplicationContext",
]
