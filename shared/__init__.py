"""
Shared utilities for the token cache performance harness.

This package aggregates common building blocks consumed by the harness:

- config: Harness configuration via pydantic-settings
- logging: Structured logging with run and tenant correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses

Any cross-cutting logic should live here to avoid import cycles.
Do not import from service_* packages into shared/.
"""
