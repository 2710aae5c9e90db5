"""
Shared utilities for the token service.

This package aggregates common building blocks consumed by the service and
its command line tool:

- config: Service configuration via pydantic-settings
- logging: Structured logging with correlation context
- errors: Canonical error types and responses

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
