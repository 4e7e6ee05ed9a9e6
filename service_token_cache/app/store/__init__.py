"""
External key-value store package.

Stores opaque byte blobs under string keys with a time-to-live. Lookups
report "not found" for missing and expired entries, never stale data.
"""
