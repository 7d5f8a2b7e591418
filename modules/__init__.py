"""
Application Modules.

- spark/: Optimistic note sync layer (local store, remote feed, reconciliation)
"""
