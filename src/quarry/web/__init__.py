"""
HTTP API for quarry.

Provides:
- REST endpoints to start, inspect and cancel research jobs
- A JobRunner service that owns the background job tasks
"""

from .server import create_app

__all__ = ["create_app"]
