"""
Fake authenticating client package.

Only what the harness needs from a confidential client: an in-memory
token cache with Marshal/Unmarshal capabilities, synthetic token
injection, and silent acquisition from the application cache.
"""
