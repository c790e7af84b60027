"""Shared (distributed) cache table - one row per query fingerprint."""

SHARED_CACHE_DDL = """
CREATE TABLE IF NOT EXISTS shared_cache (
    key VARCHAR PRIMARY KEY,
    data JSON NOT NULL,
    stored_at TIMESTAMP NOT NULL,
    expires_at TIMESTAMP NOT NULL
)
"""
