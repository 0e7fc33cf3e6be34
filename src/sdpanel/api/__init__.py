"""SD Panel - FastAPI REST API layer.

This package contains the FastAPI application that proxies generation
requests to a Stable Diffusion WebUI instance, and the Pydantic
request/response models.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request and response validation.
"""
