"""
Core utilities shared across the internal tools server.

This package hosts configuration, logging, URL patterns, the request
middleware chain and the OAuth provider registry. Routers and services depend
on these primitives instead of reading the environment directly.
"""
