"""
Console caching package.

Holds the keyed cache store, the tag index used for invalidation fan-out
and the cache entry model. Entries are deduplicated per (endpoint,
argument) and invalidated by tag; only optimistic mutations patch their
data in place.
"""
