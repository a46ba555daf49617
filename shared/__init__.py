"""
Shared utilities for the Tenant Billing Rules service.

This package aggregates common building blocks consumed by services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request/tenant correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorators for idempotent collaborator reads
- base_service: FastAPI service shell (health, metrics, error handlers)
- test_helpers: Test data factories and in-memory collaborators

Apart from test_helpers, do not import from service packages into shared/.
"""
