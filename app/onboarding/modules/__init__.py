"""
Feature modules live under this package.

Each module owns its models, service functions and blueprint, and reuses the
platform primitives (request context, audit, storage, DB session).
"""
