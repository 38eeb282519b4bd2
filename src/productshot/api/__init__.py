"""Productshot Studio — FastAPI REST API layer.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request validation.
messages
    User-facing text for each dispatch failure kind.
"""
