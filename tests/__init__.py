"""
MuseumQuest test suite.

- tests/unit/         : in-memory store, no external services
- tests/integration/  : real Redis through testcontainers
"""
