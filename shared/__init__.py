"""
Shared utilities for the admin console data layer.

This package aggregates common building blocks consumed by every package:

- config: Console configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry helper for idempotent requests
- test_helpers: Fake transport and catalog data factories

Nothing here may import from admin_console.
"""
