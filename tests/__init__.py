"""
taara test suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Orchestrator, SQLite and CLI tests (local files only)
- e2e/: End-to-end tests against PostgreSQL and MinIO (Docker)
"""
