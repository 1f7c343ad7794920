"""
Backend package for the replication tracker.

Contains the ORM models and their validation rules, the persistence
helpers, the aggregate statistics report and the HTTP API.
"""
