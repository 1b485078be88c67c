"""
Service layer for the HTTP API.

- JobRunner: starts research jobs as background tasks and cancels them
"""
