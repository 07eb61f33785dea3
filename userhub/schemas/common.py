"""
Common schema types used across the API.
"""

from pydantic import BaseModel


class DatabaseHealth(BaseModel):
    status: str = "connected"
    latency_ms: float = 0.0


class HealthResponse(BaseModel):
    """REST health check response."""

    status: str = "ok"
    version: str
    environment: str
    uptime: int
    database: DatabaseHealth
