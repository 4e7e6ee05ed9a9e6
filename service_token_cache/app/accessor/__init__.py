"""
Cache accessor package.

The accessor is the thin boundary between the client's in-memory token
cache and the external store. Every call performs exactly one store
operation and nothing is cached in-process.
"""
