"""
Query and mutation layer sitting between views and the cache store.
"""
