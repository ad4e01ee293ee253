"""
Core synchronization engine.

The `SyncEngine` resolves the pack and its index and coordinates the run,
delegating each index entry to the `EntryProcessor`.
"""
