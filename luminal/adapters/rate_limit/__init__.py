"""Rate limiting adapters.

This package keeps the limiter behind a small abstraction so the service can
start with a per-process, in-memory store and later move to a shared one
without changing the HTTP layer.
"""
