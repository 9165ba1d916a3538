"""
Database package for Animuse.

Public API:
    - db_connection: Shared ConnectionManager holding the single aiosqlite connection
    - SchemaManager: Creates tables and indexes on first open
"""
