"""
Shared building blocks: base models, structured logging, error codes,
authenticated actions and request middleware.
"""
