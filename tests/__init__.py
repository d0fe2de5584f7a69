"""
S3 Snapshot Store Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies, in-memory object store)
- integration/: Store wiring from configuration against the in-memory object store
"""
