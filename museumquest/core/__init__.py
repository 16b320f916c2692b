"""
Core infrastructure layer for MuseumQuest.

Subpackages
-----------
- config: static ``Config`` and dynamic ``ConfigManager``
- logging: structured logging and ``LogContext``
- redis: ``RedisService`` client lifecycle
- store: ``RemoteStore`` interface and its Redis / in-memory adapters
- validation: ``InputValidator``
- infra: ``ApplicationContext`` wiring

Import from the subpackages directly; this package re-exports nothing so
that importing one subsystem never drags in the others.
"""
