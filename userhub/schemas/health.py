"""
Health procedure schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field


class EchoInput(BaseModel):
    message: str = Field(..., min_length=1, max_length=1000)


class PingInput(BaseModel):
    delay: Optional[float] = Field(None, ge=0, le=5000, description="Milliseconds to wait before answering")
