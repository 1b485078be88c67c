"""
API endpoints for quarry.

Provides REST endpoints for:
- Research jobs (GET/POST /api/jobs/*)
"""
